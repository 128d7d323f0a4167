from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from bs4 import BeautifulSoup, Comment, Tag
from soupsieve import SelectorSyntaxError

from blogsmith.services.text_cleaner import clean_article_content

LOGGER = logging.getLogger("blogsmith.extraction")

DEFAULT_REMOVAL_SELECTORS: tuple[str, ...] = (
    "script",
    "style",
    "noscript",
    "iframe",
    "nav",
    "header",
    "footer",
    "aside",
    "form",
    ".sidebar",
    ".comments",
    "#comments",
    ".advertisement",
    ".ads",
    ".social-share",
    ".share-buttons",
    ".related-posts",
    ".author-bio",
)
DEFAULT_CONTENT_SELECTORS: tuple[str, ...] = (
    "article",
    ".post-content",
    ".entry-content",
    ".article-content",
    ".content-body",
    ".blog-content",
    "main .content",
    "[itemprop='articleBody']",
    "main",
)
DEFAULT_WAIT_SELECTORS: tuple[str, ...] = (
    "article",
    ".post-content",
    ".entry-content",
    "main",
)
DEFAULT_MIN_CONTENT_CHARS = 200

BLOCK_TAGS: tuple[str, ...] = (
    "p",
    "div",
    "section",
    "article",
    "li",
    "ul",
    "ol",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "blockquote",
    "pre",
    "table",
    "tr",
)


class ExtractionFailure(Exception):
    pass


@dataclass(frozen=True)
class ExtractionProfile:
    """
    Ordered selector data driving content extraction.

    Selectors are tried in order and the first element whose text is longer
    than `min_content_chars` wins; when none qualifies the document body is used.
    """

    removal_selectors: tuple[str, ...] = DEFAULT_REMOVAL_SELECTORS
    content_selectors: tuple[str, ...] = DEFAULT_CONTENT_SELECTORS
    wait_selectors: tuple[str, ...] = DEFAULT_WAIT_SELECTORS
    min_content_chars: int = DEFAULT_MIN_CONTENT_CHARS
    title_meta_properties: tuple[str, ...] = field(default=("og:title",))

    @classmethod
    def from_lists(
        cls,
        *,
        removal_selectors: Sequence[str] | None = None,
        content_selectors: Sequence[str] | None = None,
        wait_selectors: Sequence[str] | None = None,
        min_content_chars: int | None = None,
    ) -> ExtractionProfile:
        return cls(
            removal_selectors=_clean_selectors(removal_selectors, DEFAULT_REMOVAL_SELECTORS),
            content_selectors=_clean_selectors(content_selectors, DEFAULT_CONTENT_SELECTORS),
            wait_selectors=_clean_selectors(wait_selectors, DEFAULT_WAIT_SELECTORS),
            min_content_chars=(
                DEFAULT_MIN_CONTENT_CHARS
                if min_content_chars is None
                else max(0, min_content_chars)
            ),
        )


@dataclass(frozen=True)
class ExtractedPage:
    title: str
    content: str
    url: str
    matched_selector: str | None


def parse_html(html_text: str) -> BeautifulSoup:
    return BeautifulSoup(html_text, "html.parser")


def strip_non_content(soup: BeautifulSoup, removal_selectors: Sequence[str]) -> None:
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()
    for selector in removal_selectors:
        for element in safe_select(soup, selector):
            element.decompose()


def extract_title(soup: BeautifulSoup, *, meta_properties: Sequence[str] = ("og:title",)) -> str:
    heading = soup.find("h1")
    if isinstance(heading, Tag):
        heading_text = _collapse(heading.get_text(" ", strip=True))
        if heading_text:
            return heading_text
    if soup.title is not None:
        title_text = _collapse(soup.title.get_text(" ", strip=True))
        if title_text:
            return title_text
    for meta_property in meta_properties:
        meta = soup.find("meta", attrs={"property": meta_property})
        if isinstance(meta, Tag):
            content = meta.get("content")
            if isinstance(content, str) and content.strip():
                return _collapse(content)
    return ""


def _collapse(text: str) -> str:
    return " ".join(text.split())


def select_content(
    soup: BeautifulSoup,
    content_selectors: Sequence[str],
    *,
    min_chars: int,
) -> tuple[str, str]:
    for selector in content_selectors:
        element = safe_select_one(soup, selector)
        if element is None:
            continue
        text = element.get_text()
        if len(text.strip()) > min_chars:
            return selector, text
    raise ExtractionFailure("no content selector produced enough text")


def body_text(soup: BeautifulSoup) -> str:
    if soup.body is not None:
        return soup.body.get_text()
    return soup.get_text()


def extract_page(html_text: str, *, url: str, profile: ExtractionProfile) -> ExtractedPage:
    soup = parse_html(html_text)
    strip_non_content(soup, profile.removal_selectors)
    title = extract_title(soup, meta_properties=profile.title_meta_properties)
    _mark_block_boundaries(soup)

    matched_selector: str | None
    try:
        matched_selector, raw_content = select_content(
            soup,
            profile.content_selectors,
            min_chars=profile.min_content_chars,
        )
    except ExtractionFailure:
        LOGGER.debug("no content selector qualified; using document body url=%s", url)
        matched_selector = None
        raw_content = body_text(soup)

    return ExtractedPage(
        title=" ".join(title.split()),
        content=clean_article_content(raw_content),
        url=url,
        matched_selector=matched_selector,
    )


def _mark_block_boundaries(soup: BeautifulSoup) -> None:
    for line_break in soup.find_all("br"):
        line_break.replace_with("\n")
    for block in soup.find_all(BLOCK_TAGS):
        block.insert_before("\n")
        block.insert_after("\n")


def safe_select(soup: Tag, selector: str) -> list[Tag]:
    try:
        return list(soup.select(selector))
    except SelectorSyntaxError:
        LOGGER.warning("ignoring invalid css selector selector=%s", selector)
        return []


def safe_select_one(soup: BeautifulSoup, selector: str) -> Tag | None:
    try:
        return soup.select_one(selector)
    except SelectorSyntaxError:
        LOGGER.warning("ignoring invalid css selector selector=%s", selector)
        return None


def _clean_selectors(values: Sequence[str] | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if values is None:
        return default
    cleaned = tuple(value.strip() for value in values if value.strip())
    return cleaned or default
