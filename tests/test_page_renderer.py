from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from blogsmith.services import page_renderer
from blogsmith.services.content_extraction import ExtractionProfile
from blogsmith.services.page_renderer import PlaywrightPageRenderer, RenderingError


class _FakePage:
    def __init__(self, *, status: int, evaluated: dict[str, Any], selector_error: Exception | None) -> None:
        self._status = status
        self._evaluated = evaluated
        self._selector_error = selector_error
        self.url = "https://example.com/final"
        self.evaluate_args: dict[str, Any] = {}

    def goto(self, url: str, **_: Any) -> Any:
        _ = url
        return SimpleNamespace(status=self._status)

    def wait_for_selector(self, selector: str, **_: Any) -> None:
        _ = selector
        if self._selector_error is not None:
            raise self._selector_error

    def evaluate(self, script: str, args: dict[str, Any]) -> dict[str, Any]:
        _ = script
        self.evaluate_args = args
        return self._evaluated


class _FakeBrowser:
    def __init__(self, page: _FakePage) -> None:
        self._page = page
        self.closed = False
        self.context_kwargs: dict[str, Any] = {}

    def new_context(self, **kwargs: Any) -> Any:
        self.context_kwargs = kwargs
        return SimpleNamespace(new_page=lambda: self._page)

    def close(self) -> None:
        self.closed = True


class _FakePlaywright:
    def __init__(self, browser: _FakeBrowser | None, launch_error: Exception | None = None) -> None:
        self._browser = browser
        self._launch_error = launch_error
        self.launch_kwargs: dict[str, Any] = {}
        self.chromium = SimpleNamespace(launch=self._launch)

    def _launch(self, **kwargs: Any) -> _FakeBrowser:
        self.launch_kwargs = kwargs
        if self._launch_error is not None:
            raise self._launch_error
        assert self._browser is not None
        return self._browser

    def __enter__(self) -> _FakePlaywright:
        return self

    def __exit__(self, *_: object) -> None:
        return None


def _install(
    monkeypatch: pytest.MonkeyPatch,
    *,
    status: int = 200,
    evaluated: dict[str, Any] | None = None,
    selector_error: Exception | None = None,
    launch_error: Exception | None = None,
) -> tuple[_FakePlaywright, _FakeBrowser, _FakePage]:
    page = _FakePage(
        status=status,
        evaluated=evaluated or {"title": "  Rendered   Title ", "content": "Body  text\n\n\n\nmore"},
        selector_error=selector_error,
    )
    browser = _FakeBrowser(page)
    playwright = _FakePlaywright(browser, launch_error=launch_error)
    monkeypatch.setattr(page_renderer, "sync_playwright", lambda: playwright)
    return playwright, browser, page


def test_render_extracts_and_cleans_content(monkeypatch: pytest.MonkeyPatch) -> None:
    playwright, browser, page = _install(monkeypatch)
    renderer = PlaywrightPageRenderer(user_agent="test-agent", sandbox=False)

    rendered = renderer.render("https://example.com/js-page", ExtractionProfile())

    assert rendered.title == "Rendered Title"
    assert rendered.content == "Body text\n\nmore"
    assert rendered.final_url == "https://example.com/final"
    assert browser.closed is True
    assert browser.context_kwargs == {"user_agent": "test-agent"}
    assert playwright.launch_kwargs["headless"] is True
    assert playwright.launch_kwargs["chromium_sandbox"] is False
    assert page.evaluate_args["minChars"] == 200
    assert page.evaluate_args["contentSelectors"][0] == "article"


def test_render_tolerates_missing_wait_selector(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, selector_error=PlaywrightTimeoutError("timed out"))

    rendered = PlaywrightPageRenderer().render("https://example.com/slow", ExtractionProfile())

    assert rendered.title == "Rendered Title"


def test_render_error_status_closes_browser(monkeypatch: pytest.MonkeyPatch) -> None:
    _, browser, _ = _install(monkeypatch, status=403)

    with pytest.raises(RenderingError, match="http_403"):
        PlaywrightPageRenderer().render("https://example.com/forbidden", ExtractionProfile())

    assert browser.closed is True


def test_browser_failures_become_rendering_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, launch_error=PlaywrightError("Executable doesn't exist"))

    with pytest.raises(RenderingError, match="render_failed"):
        PlaywrightPageRenderer().render("https://example.com/x", ExtractionProfile())
