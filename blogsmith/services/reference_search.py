"""
Web search for reference material related to an article.

Results are scraped from a search engine's HTML page and filtered so that
social, video and encyclopedia hosts (and the source blog itself) never
come back as references.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from urllib.parse import parse_qs, urlparse

from bs4 import Tag

from blogsmith.services.content_extraction import parse_html, safe_select
from blogsmith.services.http_fetch import HttpClient, HttpFetchError, RateLimitedError

LOGGER = logging.getLogger("blogsmith.search")

DEFAULT_SEARCH_URL = "https://www.google.com/search"
DEFAULT_QUERY_MODIFIER = "blog OR article"
DEFAULT_EXCLUDED_DOMAINS: tuple[str, ...] = (
    "youtube.com",
    "facebook.com",
    "twitter.com",
    "linkedin.com",
    "instagram.com",
    "pinterest.com",
    "reddit.com",
    "quora.com",
    "wikipedia.org",
)
DEFAULT_RESULT_SELECTORS: tuple[str, ...] = ("div.g", "div[data-ved]")
EXTRA_RESULTS_REQUESTED = 5


@dataclass(frozen=True)
class SearchResult:
    title: str
    url: str


def is_excluded_url(url: str, excluded_domains: Sequence[str]) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return True
    if parsed.scheme not in {"http", "https"}:
        return True
    host = (parsed.hostname or "").lower()
    if not host:
        return True
    for domain in excluded_domains:
        normalized = domain.strip().lower()
        if normalized and (host == normalized or host.endswith(f".{normalized}")):
            return True
    return False


class ReferenceSearchClient:
    def __init__(
        self,
        *,
        http_client: HttpClient,
        search_url: str = DEFAULT_SEARCH_URL,
        query_modifier: str = DEFAULT_QUERY_MODIFIER,
        excluded_domains: Sequence[str] = DEFAULT_EXCLUDED_DOMAINS,
        result_selectors: Sequence[str] = DEFAULT_RESULT_SELECTORS,
        timeout_seconds: float = 10.0,
        retry_base_delay_seconds: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._http_client = http_client
        self._search_url = search_url
        self._query_modifier = query_modifier.strip()
        self._excluded_domains = tuple(excluded_domains)
        self._result_selector = ", ".join(result_selectors)
        self._timeout_seconds = timeout_seconds
        self._retry_base_delay_seconds = max(0.0, retry_base_delay_seconds)
        self._sleep = sleep

    @property
    def excluded_domains(self) -> tuple[str, ...]:
        return self._excluded_domains

    def search(self, query: str, num_results: int) -> list[SearchResult]:
        if num_results <= 0 or not query.strip():
            return []
        full_query = f"{query.strip()} {self._query_modifier}".strip()
        LOGGER.info("reference search query=%s", query)
        try:
            response = self._http_client.get_text(
                self._search_url,
                params={
                    "q": full_query,
                    "num": num_results + EXTRA_RESULTS_REQUESTED,
                    "hl": "en",
                },
                timeout_seconds=self._timeout_seconds,
            )
        except RateLimitedError as exc:
            LOGGER.warning(
                "search engine rate limited the request status=%s query=%s",
                exc.status_code,
                query,
            )
            return []

        results = self.parse_results(response.body, num_results)
        LOGGER.info("reference search finished query=%s results=%s", query, len(results))
        return results

    def parse_results(self, html_text: str, num_results: int) -> list[SearchResult]:
        soup = parse_html(html_text)
        results: list[SearchResult] = []
        seen_urls: set[str] = set()
        for block in safe_select(soup, self._result_selector):
            if len(results) >= num_results:
                break
            heading = block.find("h3")
            if not isinstance(heading, Tag):
                continue
            title = " ".join(heading.get_text(" ", strip=True).split())
            url = _first_result_url(block)
            if not title or url is None or url in seen_urls:
                continue
            if is_excluded_url(url, self._excluded_domains):
                continue
            seen_urls.add(url)
            results.append(SearchResult(title=title, url=url))
        return results

    def search_with_retry(
        self,
        query: str,
        num_results: int,
        max_retries: int = 3,
    ) -> list[SearchResult]:
        """Never raises; an exhausted retry budget yields no results."""
        attempts = max(1, max_retries)
        for attempt in range(1, attempts + 1):
            try:
                return self.search(query, num_results)
            except HttpFetchError as exc:
                LOGGER.warning(
                    "reference search attempt failed attempt=%s max_attempts=%s error=%s",
                    attempt,
                    attempts,
                    exc,
                )
            except Exception as exc:
                LOGGER.warning(
                    "reference search attempt raised unexpectedly attempt=%s error=%s",
                    attempt,
                    type(exc).__name__,
                    exc_info=True,
                )
            if attempt < attempts:
                delay = self._retry_base_delay_seconds * attempt
                LOGGER.info("waiting before search retry delay_seconds=%s", delay)
                self._sleep(delay)

        LOGGER.error("all reference search attempts failed attempts=%s query=%s", attempts, query)
        return []


def _first_result_url(block: Tag) -> str | None:
    for anchor in safe_select(block, "a[href]"):
        href = anchor.get("href")
        if not isinstance(href, str):
            continue
        if href.startswith("http"):
            return href
        # Result pages sometimes wrap targets as /url?q=<target>.
        if href.startswith("/url?"):
            target = parse_qs(urlparse(href).query).get("q")
            if target and target[0].startswith("http"):
                return target[0]
    return None
