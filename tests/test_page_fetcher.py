from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from blogsmith.services.content_extraction import ExtractionProfile
from blogsmith.services.http_fetch import HttpResponse, HttpStatusError, TransientNetworkError
from blogsmith.services.page_fetcher import (
    AdaptivePageFetcher,
    FetchStrategy,
    ScrapedContent,
    should_escalate,
)
from blogsmith.services.page_renderer import RenderedContent, RenderingError
from blogsmith.telemetry import RecordingTelemetrySink, TelemetryClient

_LONG_TEXT = "Automation lets support teams answer faster without losing the human touch. " * 10


class _FakeHttpClient:
    def __init__(self, pages: Mapping[str, str | Exception]) -> None:
        self._pages = dict(pages)
        self.requested: list[str] = []

    def get_text(self, url: str, **_: Any) -> HttpResponse:
        self.requested.append(url)
        page = self._pages[url]
        if isinstance(page, Exception):
            raise page
        return HttpResponse(url=url, status=200, body=page)


class _FakeRenderer:
    def __init__(self, *, content: str = _LONG_TEXT, error: Exception | None = None) -> None:
        self._content = content
        self._error = error
        self.calls: list[str] = []

    def render(self, url: str, profile: ExtractionProfile) -> RenderedContent:
        _ = profile
        self.calls.append(url)
        if self._error is not None:
            raise self._error
        return RenderedContent(title="Rendered Title", content=self._content, final_url=url)


def _article_html(text: str) -> str:
    return f"<html><head><title>Static Title</title></head><body><article>{text}</article></body></html>"


def _fetcher(
    http_client: _FakeHttpClient,
    renderer: _FakeRenderer | None,
    *,
    sink: RecordingTelemetrySink | None = None,
    sleeps: list[float] | None = None,
) -> AdaptivePageFetcher:
    telemetry = TelemetryClient(enabled=True, sink=sink) if sink is not None else None
    recorded = sleeps if sleeps is not None else []
    return AdaptivePageFetcher(
        http_client=http_client,  # type: ignore[arg-type]
        renderer=renderer,
        escalation_min_chars=500,
        telemetry=telemetry,
        sleep=recorded.append,
    )


def test_long_static_content_is_returned_without_rendering() -> None:
    url = "https://example.com/long"
    renderer = _FakeRenderer()
    fetcher = _fetcher(_FakeHttpClient({url: _article_html(_LONG_TEXT)}), renderer)

    result = fetcher.fetch(url)

    assert result.error is False
    assert result.strategy is FetchStrategy.STATIC
    assert result.title == "Static Title"
    assert len(result.content) >= 500
    assert renderer.calls == []


def test_short_static_content_escalates_to_renderer() -> None:
    url = "https://example.com/short"
    short_text = "x" * 50
    renderer = _FakeRenderer()
    sink = RecordingTelemetrySink()
    fetcher = _fetcher(_FakeHttpClient({url: _article_html(short_text)}), renderer, sink=sink)

    result = fetcher.fetch(url)

    assert renderer.calls == [url]
    assert result.strategy is FetchStrategy.RENDERED
    assert result.title == "Rendered Title"
    assert result.content == _LONG_TEXT
    assert sink.names() == ["page.fetch.escalated"]
    assert sink.events[0][1]["static_chars"] == 50


def test_static_http_error_escalates_to_renderer() -> None:
    url = "https://example.com/blocked"
    renderer = _FakeRenderer()
    http_client = _FakeHttpClient({url: HttpStatusError("http_403", url=url, status_code=403)})
    fetcher = _fetcher(http_client, renderer)

    result = fetcher.fetch(url)

    assert result.error is False
    assert result.strategy is FetchStrategy.RENDERED
    assert renderer.calls == [url]


def test_both_paths_failing_returns_error_result() -> None:
    url = "https://example.com/down"
    renderer = _FakeRenderer(error=RenderingError("navigation_failed"))
    sink = RecordingTelemetrySink()
    http_client = _FakeHttpClient({url: TransientNetworkError("network_error:URLError", url=url)})
    fetcher = _fetcher(http_client, renderer, sink=sink)

    result = fetcher.fetch(url)

    assert result == ScrapedContent.failed(url)
    assert result.error is True
    assert result.content == ""
    assert sink.names() == ["page.fetch.escalated", "page.fetch.failed"]


def test_render_failure_keeps_short_static_content() -> None:
    url = "https://example.com/partial"
    renderer = _FakeRenderer(error=RenderingError("browser_crashed"))
    fetcher = _fetcher(_FakeHttpClient({url: _article_html("Just a teaser paragraph.")}), renderer)

    result = fetcher.fetch(url)

    assert result.error is False
    assert result.strategy is FetchStrategy.STATIC
    assert "teaser" in result.content


def test_without_renderer_static_error_becomes_failure() -> None:
    url = "https://example.com/missing"
    http_client = _FakeHttpClient({url: HttpStatusError("http_404", url=url, status_code=404)})
    fetcher = _fetcher(http_client, None)

    assert fetcher.fetch(url).error is True


def test_unexpected_static_exception_escalates_instead_of_raising() -> None:
    url = "https://example.com/odd-charset"
    renderer = _FakeRenderer()
    http_client = _FakeHttpClient({url: LookupError("unknown encoding: x-unknown-enc")})

    result = _fetcher(http_client, renderer).fetch(url)

    assert result.strategy is FetchStrategy.RENDERED
    assert renderer.calls == [url]

    failing = _FakeRenderer(error=RenderingError("render_failed"))
    assert _fetcher(http_client, failing).fetch(url) == ScrapedContent.failed(url)


def test_fetch_many_waits_between_pages_only() -> None:
    urls = ["https://example.com/a", "https://example.com/b", "https://example.com/c"]
    sleeps: list[float] = []
    http_client = _FakeHttpClient({url: _article_html(_LONG_TEXT) for url in urls})
    fetcher = _fetcher(http_client, _FakeRenderer(), sleeps=sleeps)

    results = fetcher.fetch_many(urls, delay_seconds=2.0)

    assert [result.url for result in results] == urls
    assert sleeps == [2.0, 2.0]
    assert http_client.requested == urls


def test_should_escalate_thresholds() -> None:
    assert should_escalate(None, min_chars=500) is True
    short = ScrapedContent(title="t", content="y" * 499, url="u")
    enough = ScrapedContent(title="t", content="y" * 500, url="u")
    assert should_escalate(short, min_chars=500) is True
    assert should_escalate(enough, min_chars=500) is False
