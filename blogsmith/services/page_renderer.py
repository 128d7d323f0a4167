"""Headless-browser rendering for pages whose content only exists after JavaScript runs."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, cast

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from blogsmith.services.content_extraction import ExtractionProfile
from blogsmith.services.http_fetch import DEFAULT_USER_AGENT
from blogsmith.services.text_cleaner import clean_article_content

LOGGER = logging.getLogger("blogsmith.renderer")

DEFAULT_NAVIGATION_TIMEOUT_MS = 30_000
DEFAULT_SELECTOR_TIMEOUT_MS = 5_000

# Runs inside the page; mirrors the static extraction policy against the live DOM.
_EXTRACT_SCRIPT = """
(options) => {
  for (const selector of options.removeSelectors) {
    try {
      document.querySelectorAll(selector).forEach((el) => el.remove());
    } catch (err) {}
  }
  const heading = document.querySelector('h1');
  let title = heading && heading.innerText ? heading.innerText.trim() : '';
  if (!title && document.title) {
    title = document.title.trim();
  }
  if (!title) {
    const meta = document.querySelector('meta[property="og:title"]');
    title = meta && meta.content ? meta.content.trim() : '';
  }
  let content = '';
  for (const selector of options.contentSelectors) {
    let el = null;
    try {
      el = document.querySelector(selector);
    } catch (err) {
      el = null;
    }
    if (el && el.innerText && el.innerText.trim().length > options.minChars) {
      content = el.innerText;
      break;
    }
  }
  if (!content && document.body) {
    content = document.body.innerText || '';
  }
  return { title: title, content: content };
}
"""


class RenderingError(Exception):
    pass


@dataclass(frozen=True)
class RenderedContent:
    title: str
    content: str
    final_url: str


class PlaywrightPageRenderer:
    """
    Renders one page per call in a fresh Chromium instance.

    The browser is launched and torn down inside `render`, so no renderer
    process outlives a single fetch.
    """

    def __init__(
        self,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        navigation_timeout_ms: int = DEFAULT_NAVIGATION_TIMEOUT_MS,
        selector_timeout_ms: int = DEFAULT_SELECTOR_TIMEOUT_MS,
        sandbox: bool = True,
    ) -> None:
        self._user_agent = user_agent
        self._navigation_timeout_ms = max(1_000, navigation_timeout_ms)
        self._selector_timeout_ms = max(0, selector_timeout_ms)
        self._sandbox = sandbox

    def render(self, url: str, profile: ExtractionProfile) -> RenderedContent:
        LOGGER.info("rendering page with headless browser url=%s", url)
        try:
            with sync_playwright() as playwright:
                browser = playwright.chromium.launch(
                    headless=True,
                    chromium_sandbox=self._sandbox,
                    args=["--disable-dev-shm-usage", "--disable-gpu"],
                )
                try:
                    context = browser.new_context(user_agent=self._user_agent)
                    page = context.new_page()
                    response = page.goto(
                        url,
                        wait_until="networkidle",
                        timeout=self._navigation_timeout_ms,
                    )
                    if response is not None and response.status >= 400:
                        raise RenderingError(f"http_{response.status}")
                    self._wait_for_content(page, profile)
                    raw = cast(
                        dict[str, Any],
                        page.evaluate(
                            _EXTRACT_SCRIPT,
                            {
                                "removeSelectors": list(profile.removal_selectors),
                                "contentSelectors": list(profile.content_selectors),
                                "minChars": profile.min_content_chars,
                            },
                        ),
                    )
                    final_url = page.url or url
                finally:
                    browser.close()
        except PlaywrightError as exc:
            raise RenderingError(f"render_failed:{type(exc).__name__}: {exc}") from exc

        title = raw.get("title")
        content = raw.get("content")
        return RenderedContent(
            title=" ".join(title.split()) if isinstance(title, str) else "",
            content=clean_article_content(content if isinstance(content, str) else ""),
            final_url=final_url,
        )

    def _wait_for_content(self, page: Any, profile: ExtractionProfile) -> None:
        if not profile.wait_selectors or self._selector_timeout_ms <= 0:
            return
        try:
            page.wait_for_selector(
                ", ".join(profile.wait_selectors),
                timeout=self._selector_timeout_ms,
            )
        except PlaywrightTimeoutError:
            LOGGER.debug(
                "content selector never appeared; extracting anyway timeout_ms=%s",
                self._selector_timeout_ms,
            )
