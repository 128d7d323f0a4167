from __future__ import annotations

import math
import re
from html import unescape

SLUG_MAX_LENGTH = 100
WORDS_PER_MINUTE = 200
ELLIPSIS = "..."

BOILERPLATE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"share this article", re.IGNORECASE),
    re.compile(r"follow us on", re.IGNORECASE),
    re.compile(r"subscribe to our newsletter", re.IGNORECASE),
    re.compile(r"read more articles", re.IGNORECASE),
    re.compile(r"related posts", re.IGNORECASE),
    re.compile(r"comments\s*\(\d+\)", re.IGNORECASE),
    re.compile(r"leave a comment", re.IGNORECASE),
    re.compile(r"advertisement", re.IGNORECASE),
)

_HORIZONTAL_WHITESPACE = re.compile(r"[^\S\n]+")
_BLANK_LINE_RUN = re.compile(r"\n{3,}")
_SLUG_SEPARATOR = re.compile(r"[^a-z0-9]+")
_SENTENCE = re.compile(r"[^.!?]+[.!?]+")
_SCRIPT_BLOCK = re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
_STYLE_BLOCK = re.compile(r"<style\b[^>]*>.*?</style\s*>", re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^>]+>")


def normalize_whitespace(text: str | None) -> str:
    """
    Collapse horizontal whitespace runs to one space and keep at most one
    blank line between paragraphs.
    """
    if not text:
        return ""
    unified = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = [_HORIZONTAL_WHITESPACE.sub(" ", line).strip() for line in unified.split("\n")]
    joined = "\n".join(lines)
    return _BLANK_LINE_RUN.sub("\n\n", joined).strip()


def strip_html(html_text: str | None) -> str:
    if not html_text:
        return ""
    without_scripts = _SCRIPT_BLOCK.sub("", html_text)
    without_styles = _STYLE_BLOCK.sub("", without_scripts)
    return unescape(_TAG.sub(" ", without_styles)).replace("\xa0", " ")


def clean_article_content(text: str | None) -> str:
    if not text:
        return ""
    cleaned = text
    for pattern in BOILERPLATE_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    return normalize_whitespace(cleaned)


def generate_slug(title: str | None) -> str:
    if not title:
        return ""
    slug = _SLUG_SEPARATOR.sub("-", title.lower()).strip("-")
    # The cut can land right after a separator.
    return slug[:SLUG_MAX_LENGTH].rstrip("-")


def extract_excerpt(text: str | None, sentence_count: int = 2) -> str:
    if not text:
        return ""
    sentences = [match.group(0).strip() for match in _SENTENCE.finditer(text)]
    return " ".join(sentences[: max(0, sentence_count)]).strip()


def truncate_text(text: str | None, max_length: int = 200) -> str:
    if not text:
        return ""
    if len(text) <= max_length:
        return text
    cut = text[:max_length]
    boundary = re.search(r"\s+\S*$", cut)
    if boundary is not None and boundary.start() > 0:
        cut = cut[: boundary.start()]
    return f"{cut.rstrip()}{ELLIPSIS}"


def count_words(text: str | None) -> int:
    if not text:
        return 0
    return len(text.split())


def reading_time_minutes(word_count: int) -> int:
    if word_count <= 0:
        return 0
    return math.ceil(word_count / WORDS_PER_MINUTE)
