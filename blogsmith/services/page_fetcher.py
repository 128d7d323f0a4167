"""
Static-first page fetching with escalation to a headless browser.

A fetch first tries a plain HTTP GET plus HTML extraction. When that path
errors, or yields fewer than `escalation_min_chars` characters, the page is
rendered in a browser instead. `fetch` never raises; a page that no path
could read comes back with `error=True` and empty content.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from blogsmith.services.content_extraction import ExtractionProfile, extract_page
from blogsmith.services.http_fetch import HttpClient, HttpFetchError
from blogsmith.services.page_renderer import RenderedContent, RenderingError
from blogsmith.telemetry import TelemetryClient

LOGGER = logging.getLogger("blogsmith.fetcher")

DEFAULT_ESCALATION_MIN_CHARS = 500


class FetchStrategy(StrEnum):
    STATIC = "static"
    RENDERED = "rendered"


class PageRenderer(Protocol):
    def render(self, url: str, profile: ExtractionProfile) -> RenderedContent:
        ...


@dataclass(frozen=True)
class ScrapedContent:
    title: str
    content: str
    url: str
    error: bool = False
    strategy: FetchStrategy | None = None

    @classmethod
    def failed(cls, url: str) -> ScrapedContent:
        return cls(title="", content="", url=url, error=True, strategy=None)


def should_escalate(result: ScrapedContent | None, *, min_chars: int) -> bool:
    """A missing static result means the static path raised."""
    if result is None:
        return True
    return len(result.content) < min_chars


class AdaptivePageFetcher:
    def __init__(
        self,
        *,
        http_client: HttpClient,
        renderer: PageRenderer | None,
        profile: ExtractionProfile | None = None,
        escalation_min_chars: int = DEFAULT_ESCALATION_MIN_CHARS,
        telemetry: TelemetryClient | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._http_client = http_client
        self._renderer = renderer
        self._profile = profile or ExtractionProfile()
        self._escalation_min_chars = max(0, escalation_min_chars)
        self._telemetry = telemetry or TelemetryClient.disabled()
        self._sleep = sleep

    @property
    def profile(self) -> ExtractionProfile:
        return self._profile

    def fetch(self, url: str) -> ScrapedContent:
        static_result: ScrapedContent | None
        try:
            static_result = self.fetch_static(url)
        except HttpFetchError as exc:
            LOGGER.info(
                "static fetch failed; escalating url=%s error=%s",
                url,
                exc,
            )
            static_result = None
        except Exception:
            LOGGER.warning("static fetch crashed; escalating url=%s", url, exc_info=True)
            static_result = None

        if static_result is not None and not should_escalate(
            static_result, min_chars=self._escalation_min_chars
        ):
            return static_result

        if self._renderer is None:
            return static_result or ScrapedContent.failed(url)

        self._telemetry.emit(
            "page.fetch.escalated",
            url=url,
            static_failed=static_result is None,
            static_chars=0 if static_result is None else len(static_result.content),
        )
        try:
            return self.fetch_rendered(url)
        except RenderingError as exc:
            LOGGER.warning("rendered fetch failed url=%s error=%s", url, exc)

        if static_result is not None and static_result.content:
            return static_result
        self._telemetry.emit("page.fetch.failed", url=url)
        return ScrapedContent.failed(url)

    def fetch_static(self, url: str) -> ScrapedContent:
        response = self._http_client.get_text(url)
        page = extract_page(response.body, url=response.url or url, profile=self._profile)
        LOGGER.debug(
            "static fetch extracted url=%s chars=%s selector=%s",
            url,
            len(page.content),
            page.matched_selector,
        )
        return ScrapedContent(
            title=page.title,
            content=page.content,
            url=url,
            strategy=FetchStrategy.STATIC,
        )

    def fetch_rendered(self, url: str) -> ScrapedContent:
        if self._renderer is None:
            raise RenderingError("rendering_disabled")
        rendered = self._renderer.render(url, self._profile)
        return ScrapedContent(
            title=rendered.title,
            content=rendered.content,
            url=url,
            strategy=FetchStrategy.RENDERED,
        )

    def fetch_many(
        self,
        urls: Sequence[str],
        *,
        delay_seconds: float = 0.0,
    ) -> list[ScrapedContent]:
        results: list[ScrapedContent] = []
        for index, url in enumerate(urls):
            results.append(self.fetch(url))
            if delay_seconds > 0 and index < len(urls) - 1:
                self._sleep(delay_seconds)
        return results
