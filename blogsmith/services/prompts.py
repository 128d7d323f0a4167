"""Prompt templates and builders for the rewrite model calls."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

ORIGINAL_CONTENT_LIMIT = 5000
REFERENCE_CONTENT_LIMIT = 3000
REFERENCE_MIN_CHARS = 100
TITLE_CONTEXT_LIMIT = 500
META_CONTEXT_LIMIT = 1000

REWRITE_SYSTEM_PROMPT = """You are an expert content rewriter. Rewrite articles so they are:
1. Original and unique, with no copied passages
2. Well structured with clear headings
3. Optimised for search engines
4. Engaging and informative
5. Faithful to the meaning and key points of the source

You receive the original article and optional reference material. Produce a fully rewritten version that draws on every source while remaining entirely original."""

TITLE_SYSTEM_PROMPT = (
    "You write engaging, search-friendly article titles. "
    "Reply with the new title only."
)

META_SYSTEM_PROMPT = (
    "You are an SEO specialist who writes meta descriptions. "
    "Reply with the meta description only."
)

_REWRITE_TEMPLATE = """TASK: Rewrite the article below so it is entirely original while keeping its core message and key information.

ORIGINAL ARTICLE TITLE: {title}

ORIGINAL CONTENT:
{content}
{references_block}
REQUIREMENTS:
1. Produce a fully original rewrite with no copied passages
2. Keep the key points and overall message
3. Add clear headings and structure using markdown
4. Make it engaging and search-friendly
5. Improve readability and flow
6. Work in insights from the reference material where relevant
7. Aim for 800 to 1500 words
8. Open with a strong introduction and close with a conclusion

OUTPUT FORMAT:
- Markdown
- H2 and H3 headings
- Bullet or numbered lists where they help
- A professional, engaging tone

Return ONLY the rewritten article:"""

_TITLE_TEMPLATE = """Write a new, engaging title for an article currently titled "{title}".

The article begins with: {content}

Requirements:
- Catchy without resorting to clickbait
- Under 70 characters
- Clearly different from the current title

Return ONLY the new title:"""

_META_TEMPLATE = """Write a search-friendly meta description of 150 to 160 characters for this article:

{content}

Return ONLY the meta description:"""


@dataclass(frozen=True)
class ReferenceMaterial:
    title: str
    url: str
    content: str


def build_rewrite_prompt(
    *,
    title: str,
    original_content: str,
    references: Sequence[ReferenceMaterial],
) -> str:
    sections: list[str] = []
    for reference in references:
        if len(reference.content) <= REFERENCE_MIN_CHARS:
            continue
        label = reference.title or "Untitled"
        sections.append(
            f"--- Reference {len(sections) + 1}: {label} ---\n"
            f"{reference.content[:REFERENCE_CONTENT_LIMIT]}"
        )
    references_block = ""
    if sections:
        joined = "\n\n".join(sections)
        references_block = (
            "\nREFERENCE MATERIALS (draw on these for extra insight and perspective):\n"
            f"{joined}\n"
        )
    return _REWRITE_TEMPLATE.format(
        title=title,
        content=original_content[:ORIGINAL_CONTENT_LIMIT],
        references_block=references_block,
    )


def build_title_prompt(*, title: str, content: str) -> str:
    return _TITLE_TEMPLATE.format(title=title, content=content[:TITLE_CONTEXT_LIMIT])


def build_meta_prompt(*, content: str) -> str:
    return _META_TEMPLATE.format(content=content[:META_CONTEXT_LIMIT])
