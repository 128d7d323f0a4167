from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, cast

from blogsmith.repositories.article_repository import (
    ARTICLE_STATUS_ORIGINAL,
    ARTICLE_STATUS_REWRITTEN,
    MAX_PAGE_LIMIT,
    ArticleRecord,
    ArticleReference,
)
from blogsmith.repositories.common import normalize_optional_text, parse_iso_datetime
from blogsmith.services.http_fetch import HttpClient, HttpFetchError, HttpStatusError

LOGGER = logging.getLogger("blogsmith.api_client")


class ArticleApiClient:
    """Article store backed by a running blogsmith HTTP API."""

    def __init__(self, *, http_client: HttpClient, base_url: str, timeout_seconds: float = 30.0) -> None:
        self._http_client = http_client
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds

    def list_pending(self, limit: int) -> list[ArticleRecord]:
        payload = self._http_client.send_json(
            "GET",
            f"{self._base_url}/articles",
            params={
                "status": ARTICLE_STATUS_ORIGINAL,
                "sort": "createdAt",
                "limit": min(max(1, limit), MAX_PAGE_LIMIT),
            },
            timeout_seconds=self._timeout_seconds,
        )
        data = payload.get("data")
        if not isinstance(data, list):
            raise HttpStatusError("unexpected_article_list_shape", url=f"{self._base_url}/articles")
        return [article_from_payload(item) for item in cast(list[object], data)][: max(0, limit)]

    def mark_rewritten(
        self,
        article_id: str,
        *,
        rewritten_content: str,
        references: Sequence[ArticleReference],
        seo_title: str | None = None,
        meta_description: str | None = None,
    ) -> ArticleRecord | None:
        body: dict[str, Any] = {
            "rewrittenContent": rewritten_content,
            "references": [{"title": ref.title, "url": ref.url} for ref in references],
            "status": ARTICLE_STATUS_REWRITTEN,
        }
        if seo_title is not None:
            body["seoTitle"] = seo_title
        if meta_description is not None:
            body["metaDescription"] = meta_description
        url = f"{self._base_url}/articles/{article_id}"
        try:
            payload = self._http_client.send_json(
                "PUT",
                url,
                payload=body,
                timeout_seconds=self._timeout_seconds,
            )
        except HttpFetchError as exc:
            if exc.status_code == 404:
                LOGGER.warning("article vanished before publish article_id=%s", article_id)
                return None
            raise
        return article_from_payload(payload.get("data"))


def article_from_payload(raw: object) -> ArticleRecord:
    if not isinstance(raw, Mapping):
        raise ValueError("article payload must be an object")
    item = cast(Mapping[str, Any], raw)
    metadata = item.get("metadata")
    metadata_map = cast(Mapping[str, Any], metadata) if isinstance(metadata, Mapping) else {}
    references: list[ArticleReference] = []
    raw_references = item.get("references")
    if isinstance(raw_references, list):
        for entry in cast(list[object], raw_references):
            if not isinstance(entry, Mapping):
                continue
            ref = cast(Mapping[str, Any], entry)
            url = normalize_optional_text(ref.get("url"))
            if url is not None:
                references.append(
                    ArticleReference(title=normalize_optional_text(ref.get("title")) or url, url=url)
                )
    return ArticleRecord(
        article_id=str(item["id"]),
        title=str(item["title"]),
        slug=str(item.get("slug") or ""),
        original_content=str(item.get("originalContent") or ""),
        rewritten_content=normalize_optional_text(item.get("rewrittenContent")),
        references=tuple(references),
        status=str(item.get("status") or ARTICLE_STATUS_ORIGINAL),
        source=str(item.get("source") or ""),
        source_url=normalize_optional_text(item.get("sourceUrl")),
        word_count=int(metadata_map.get("wordCount") or 0),
        reading_time=int(metadata_map.get("readingTime") or 0),
        seo_title=normalize_optional_text(item.get("seoTitle")),
        meta_description=normalize_optional_text(item.get("metaDescription")),
        created_at=parse_iso_datetime(str(item["createdAt"])),
        updated_at=parse_iso_datetime(str(item["updatedAt"])),
    )
