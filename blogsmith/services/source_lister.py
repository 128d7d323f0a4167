from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urljoin

from bs4 import Tag

from blogsmith.services.content_extraction import (
    DEFAULT_REMOVAL_SELECTORS,
    ExtractionFailure,
    parse_html,
    safe_select,
    select_content,
    strip_non_content,
)
from blogsmith.services.http_fetch import HttpClient, HttpFetchError
from blogsmith.services.text_cleaner import clean_article_content, generate_slug

LOGGER = logging.getLogger("blogsmith.source")

DEFAULT_PAGINATION_LINK_SELECTOR = 'a[href*="/blogs/page/"]'
DEFAULT_PAGINATION_PAGE_PATTERN = r"/page/(\d+)"
DEFAULT_CONTAINER_SELECTORS: tuple[str, ...] = ("article", ".post", ".blog-post", ".entry")
DEFAULT_TITLE_LINK_SELECTORS: tuple[str, ...] = (
    "h2 a",
    "h3 a",
    ".entry-title a",
    ".post-title a",
)
DEFAULT_SOURCE_CONTENT_SELECTORS: tuple[str, ...] = (
    ".entry-content",
    ".post-content",
    ".article-content",
    "article .content",
    ".blog-content",
    "main article",
    "article",
    "main",
)


@dataclass(frozen=True)
class ListingProfile:
    """Structural selectors for the source blog's index and article pages."""

    pagination_link_selector: str = DEFAULT_PAGINATION_LINK_SELECTOR
    pagination_page_pattern: str = DEFAULT_PAGINATION_PAGE_PATTERN
    container_selectors: tuple[str, ...] = DEFAULT_CONTAINER_SELECTORS
    title_link_selectors: tuple[str, ...] = DEFAULT_TITLE_LINK_SELECTORS
    content_selectors: tuple[str, ...] = DEFAULT_SOURCE_CONTENT_SELECTORS
    removal_selectors: tuple[str, ...] = DEFAULT_REMOVAL_SELECTORS


@dataclass(frozen=True)
class ArticleLink:
    title: str
    url: str
    slug: str


@dataclass(frozen=True)
class DraftArticle:
    title: str
    slug: str
    original_content: str
    source_url: str
    source: str
    status: str = "original"


class SourceSiteLister:
    def __init__(
        self,
        *,
        http_client: HttpClient,
        base_url: str,
        source_name: str = "beyondchats",
        profile: ListingProfile | None = None,
        link_delay_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._http_client = http_client
        self._base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self._source_name = source_name
        self._profile = profile or ListingProfile()
        self._link_delay_seconds = max(0.0, link_delay_seconds)
        self._sleep = sleep
        self._page_pattern = re.compile(self._profile.pagination_page_pattern)

    def page_url(self, page_number: int) -> str:
        if page_number <= 1:
            return self._base_url
        return f"{self._base_url}page/{page_number}/"

    def discover_page_count(self) -> int:
        soup = parse_html(self._http_client.get_text(self._base_url).body)
        max_page = 1
        for anchor in safe_select(soup, self._profile.pagination_link_selector):
            href = anchor.get("href")
            if not isinstance(href, str):
                continue
            match = self._page_pattern.search(href)
            if match is None:
                continue
            try:
                max_page = max(max_page, int(match.group(1)))
            except (IndexError, ValueError):
                continue
        LOGGER.info("source pagination discovered pages=%s", max_page)
        return max_page

    def list_article_links(self, page_number: int = 1) -> list[ArticleLink]:
        url = self.page_url(page_number)
        soup = parse_html(self._http_client.get_text(url).body)
        links: list[ArticleLink] = []
        seen_urls: set[str] = set()
        # A combined selector yields each container once, in document order.
        containers = safe_select(soup, ", ".join(self._profile.container_selectors))
        for container in containers:
            anchor = self._first_title_link(container)
            if anchor is None:
                continue
            title = " ".join(anchor.get_text(" ", strip=True).split())
            href = anchor.get("href")
            if not title or not isinstance(href, str) or not href.strip():
                continue
            article_url = urljoin(url, href.strip())
            if article_url in seen_urls:
                continue
            seen_urls.add(article_url)
            links.append(ArticleLink(title=title, url=article_url, slug=generate_slug(title)))

        LOGGER.info("source page listed page=%s articles=%s", page_number, len(links))
        return links

    def scrape_article_content(self, url: str) -> str:
        soup = parse_html(self._http_client.get_text(url).body)
        strip_non_content(soup, self._profile.removal_selectors)
        _, raw_content = select_content(soup, self._profile.content_selectors, min_chars=0)
        content = clean_article_content(raw_content)
        if not content:
            raise ExtractionFailure("article content is empty")
        return content

    def oldest_articles(self, count: int) -> list[DraftArticle]:
        """
        Draft records for the `count` oldest posts: the tail of the last
        listing page. Links that cannot be scraped are logged and skipped.
        """
        if count <= 0:
            return []
        last_page = self.discover_page_count()
        oldest_links = self.list_article_links(last_page)[-count:]

        drafts: list[DraftArticle] = []
        for index, link in enumerate(oldest_links):
            if index > 0 and self._link_delay_seconds > 0:
                self._sleep(self._link_delay_seconds)
            try:
                content = self.scrape_article_content(link.url)
            except (HttpFetchError, ExtractionFailure) as exc:
                LOGGER.warning(
                    "source article scrape failed title=%s url=%s error=%s",
                    link.title,
                    link.url,
                    exc,
                )
                continue
            except Exception:
                LOGGER.warning(
                    "source article scrape crashed title=%s url=%s",
                    link.title,
                    link.url,
                    exc_info=True,
                )
                continue
            drafts.append(
                DraftArticle(
                    title=link.title,
                    slug=link.slug,
                    original_content=content,
                    source_url=link.url,
                    source=self._source_name,
                )
            )

        LOGGER.info(
            "source articles scraped requested=%s scraped=%s",
            len(oldest_links),
            len(drafts),
        )
        return drafts

    def _first_title_link(self, container: Tag) -> Tag | None:
        for selector in self._profile.title_link_selectors:
            matches = safe_select(container, selector)
            if matches:
                return matches[0]
        return None

