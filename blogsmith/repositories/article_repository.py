from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from sqlite3 import Connection, Row
from typing import Any, cast
from uuid import uuid4

from blogsmith.repositories.common import (
    normalize_optional_text,
    parse_iso_datetime,
    utc_now_iso,
)
from blogsmith.repositories.database import Database
from blogsmith.services.text_cleaner import count_words, generate_slug, reading_time_minutes

ARTICLE_STATUS_ORIGINAL = "original"
ARTICLE_STATUS_REWRITTEN = "rewritten"
ARTICLE_STATUSES: frozenset[str] = frozenset({ARTICLE_STATUS_ORIGINAL, ARTICLE_STATUS_REWRITTEN})

DEFAULT_SOURCE = "beyondchats"
DEFAULT_SORT = "-createdAt"
MAX_PAGE_LIMIT = 100

_SORT_COLUMNS: dict[str, str] = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "title": "title",
}


class DuplicateSlugError(Exception):
    def __init__(self, slug: str) -> None:
        super().__init__("Article with this title already exists")
        self.slug = slug


class ArticleNotFoundError(Exception):
    def __init__(self, article_id: str) -> None:
        super().__init__("Article not found")
        self.article_id = article_id


@dataclass(frozen=True)
class ArticleReference:
    title: str
    url: str


@dataclass(frozen=True)
class ArticleRecord:
    article_id: str
    title: str
    slug: str
    original_content: str
    rewritten_content: str | None
    references: tuple[ArticleReference, ...]
    status: str
    source: str
    source_url: str | None
    word_count: int
    reading_time: int
    seo_title: str | None
    meta_description: str | None
    created_at: datetime
    updated_at: datetime

    @property
    def is_pending(self) -> bool:
        return self.status == ARTICLE_STATUS_ORIGINAL


class ArticleRepository:
    """
    SQLite-backed article store.

    Slug collisions are detected with a lookup before the write, so two
    concurrent writers can still race past each other; a single process
    writing sequentially never produces duplicates.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def create_article(
        self,
        *,
        title: str,
        original_content: str,
        source: str | None = None,
        source_url: str | None = None,
        status: str = ARTICLE_STATUS_ORIGINAL,
        rewritten_content: str | None = None,
        references: Sequence[ArticleReference] = (),
    ) -> ArticleRecord:
        normalized_title = _require_text(title, field_name="title")
        normalized_content = _require_text(original_content, field_name="originalContent")
        slug = _slug_for(normalized_title)
        normalized_status = _validate_status(status)
        normalized_rewrite = normalize_optional_text(rewritten_content)
        word_count = count_words(normalized_rewrite or normalized_content)

        now_iso = utc_now_iso()
        article_id = f"article_{uuid4().hex}"
        with self._db.connection() as conn:
            if _find_id_by_slug(conn, slug) is not None:
                raise DuplicateSlugError(slug)
            conn.execute(
                """
                INSERT INTO articles (
                    id,
                    title,
                    slug,
                    original_content,
                    rewritten_content,
                    references_json,
                    status,
                    source,
                    source_url,
                    word_count,
                    reading_time,
                    seo_title,
                    meta_description,
                    created_at,
                    updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL, NULL, ?, ?)
                """,
                (
                    article_id,
                    normalized_title,
                    slug,
                    normalized_content,
                    normalized_rewrite,
                    _dump_references(references),
                    normalized_status,
                    normalize_optional_text(source) or DEFAULT_SOURCE,
                    normalize_optional_text(source_url),
                    word_count,
                    reading_time_minutes(word_count),
                    now_iso,
                    now_iso,
                ),
            )
            created = _get_article_with_conn(conn, article_id)
        if created is None:
            raise RuntimeError("article insert did not persist")
        return created

    def get_article(self, article_id: str) -> ArticleRecord | None:
        with self._db.connection() as conn:
            return _get_article_with_conn(conn, article_id)

    def find_by_slug(self, slug: str) -> ArticleRecord | None:
        with self._db.connection() as conn:
            row = conn.execute(
                """
                SELECT *
                FROM articles
                WHERE slug = ?
                ORDER BY created_at ASC
                LIMIT 1
                """,
                (slug,),
            ).fetchone()
        if row is None:
            return None
        return _row_to_article(row)

    def list_articles(
        self,
        *,
        status: str | None = None,
        source: str | None = None,
        page: int = 1,
        limit: int = 10,
        sort: str = DEFAULT_SORT,
    ) -> list[ArticleRecord]:
        where_sql, params = _filter_clause(status=status, source=source)
        order_sql = parse_sort(sort)
        tiebreak = "DESC" if order_sql.endswith("DESC") else "ASC"
        bounded_limit = max(1, min(limit, MAX_PAGE_LIMIT))
        offset = (max(1, page) - 1) * bounded_limit
        with self._db.connection() as conn:
            rows = conn.execute(
                f"""
                SELECT *
                FROM articles
                {where_sql}
                ORDER BY {order_sql}, rowid {tiebreak}
                LIMIT ? OFFSET ?
                """,
                (*params, bounded_limit, offset),
            ).fetchall()
        return [_row_to_article(row) for row in rows]

    def count_articles(self, *, status: str | None = None, source: str | None = None) -> int:
        where_sql, params = _filter_clause(status=status, source=source)
        with self._db.connection() as conn:
            row = conn.execute(
                f"SELECT COUNT(*) AS total FROM articles {where_sql}",
                tuple(params),
            ).fetchone()
        return int(row["total"]) if row is not None else 0

    def list_pending(self, limit: int) -> list[ArticleRecord]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM articles
                WHERE status = ?
                ORDER BY created_at ASC, rowid ASC
                LIMIT ?
                """,
                (ARTICLE_STATUS_ORIGINAL, max(0, limit)),
            ).fetchall()
        return [_row_to_article(row) for row in rows]

    def update_article(
        self,
        article_id: str,
        *,
        title: str | None = None,
        original_content: str | None = None,
        rewritten_content: str | None = None,
        references: Sequence[ArticleReference] | None = None,
        status: str | None = None,
        source: str | None = None,
        source_url: str | None = None,
        seo_title: str | None = None,
        meta_description: str | None = None,
    ) -> ArticleRecord | None:
        """Apply a partial update; `None` leaves a field unchanged."""
        with self._db.connection() as conn:
            current = _get_article_with_conn(conn, article_id)
            if current is None:
                return None

            next_title = current.title
            next_slug = current.slug
            if title is not None:
                next_title = _require_text(title, field_name="title")
                next_slug = _slug_for(next_title)
                if next_slug != current.slug:
                    owner = _find_id_by_slug(conn, next_slug)
                    if owner is not None and owner != article_id:
                        raise DuplicateSlugError(next_slug)

            next_original = current.original_content
            if original_content is not None:
                next_original = _require_text(original_content, field_name="originalContent")
            next_rewrite = current.rewritten_content
            if rewritten_content is not None:
                next_rewrite = normalize_optional_text(rewritten_content)
            next_references = current.references if references is None else tuple(references)
            next_status = current.status if status is None else _validate_status(status)
            next_source = current.source
            if source is not None:
                next_source = normalize_optional_text(source) or current.source
            next_source_url = current.source_url
            if source_url is not None:
                next_source_url = normalize_optional_text(source_url)
            next_seo_title = current.seo_title
            if seo_title is not None:
                next_seo_title = normalize_optional_text(seo_title)
            next_meta = current.meta_description
            if meta_description is not None:
                next_meta = normalize_optional_text(meta_description)

            word_count = count_words(next_rewrite or next_original)
            conn.execute(
                """
                UPDATE articles
                SET title = ?,
                    slug = ?,
                    original_content = ?,
                    rewritten_content = ?,
                    references_json = ?,
                    status = ?,
                    source = ?,
                    source_url = ?,
                    word_count = ?,
                    reading_time = ?,
                    seo_title = ?,
                    meta_description = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (
                    next_title,
                    next_slug,
                    next_original,
                    next_rewrite,
                    _dump_references(next_references),
                    next_status,
                    next_source,
                    next_source_url,
                    word_count,
                    reading_time_minutes(word_count),
                    next_seo_title,
                    next_meta,
                    utc_now_iso(),
                    article_id,
                ),
            )
            return _get_article_with_conn(conn, article_id)

    def mark_rewritten(
        self,
        article_id: str,
        *,
        rewritten_content: str,
        references: Sequence[ArticleReference],
        seo_title: str | None = None,
        meta_description: str | None = None,
    ) -> ArticleRecord | None:
        return self.update_article(
            article_id,
            rewritten_content=_require_text(rewritten_content, field_name="rewrittenContent"),
            references=references,
            status=ARTICLE_STATUS_REWRITTEN,
            seo_title=seo_title,
            meta_description=meta_description,
        )

    def delete_article(self, article_id: str) -> bool:
        with self._db.connection() as conn:
            cursor = conn.execute("DELETE FROM articles WHERE id = ?", (article_id,))
            deleted = cursor.rowcount > 0
        return deleted

    def status_counts(self) -> dict[str, int]:
        counts = {status: 0 for status in sorted(ARTICLE_STATUSES)}
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT status, COUNT(*) AS total
                FROM articles
                GROUP BY status
                """
            ).fetchall()
        for row in rows:
            counts[str(row["status"])] = int(row["total"])
        return counts

    def latest_created(self, *, source: str | None = None) -> ArticleRecord | None:
        where_sql, params = _filter_clause(status=None, source=source)
        with self._db.connection() as conn:
            row = conn.execute(
                f"""
                SELECT *
                FROM articles
                {where_sql}
                ORDER BY created_at DESC, rowid DESC
                LIMIT 1
                """,
                tuple(params),
            ).fetchone()
        if row is None:
            return None
        return _row_to_article(row)


def parse_sort(sort: str | None) -> str:
    """Translate `createdAt` / `-createdAt` style keys into an ORDER BY term."""
    raw = (sort or DEFAULT_SORT).strip() or DEFAULT_SORT
    descending = raw.startswith("-")
    key = raw[1:] if descending else raw
    column = _SORT_COLUMNS.get(key)
    if column is None:
        allowed = ", ".join(sorted(_SORT_COLUMNS))
        raise ValueError(f"Unsupported sort key '{key}'. Use one of: {allowed}")
    return f"{column} {'DESC' if descending else 'ASC'}"


def _filter_clause(*, status: str | None, source: str | None) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    normalized_status = normalize_optional_text(status)
    if normalized_status is not None:
        clauses.append("status = ?")
        params.append(_validate_status(normalized_status))
    normalized_source = normalize_optional_text(source)
    if normalized_source is not None:
        clauses.append("source = ?")
        params.append(normalized_source)
    if not clauses:
        return "", params
    return f"WHERE {' AND '.join(clauses)}", params


def _find_id_by_slug(conn: Connection, slug: str) -> str | None:
    row = conn.execute("SELECT id FROM articles WHERE slug = ? LIMIT 1", (slug,)).fetchone()
    if row is None:
        return None
    return str(row["id"])


def _get_article_with_conn(conn: Connection, article_id: str) -> ArticleRecord | None:
    row = conn.execute("SELECT * FROM articles WHERE id = ? LIMIT 1", (article_id,)).fetchone()
    if row is None:
        return None
    return _row_to_article(row)


def _row_to_article(row: Row) -> ArticleRecord:
    return ArticleRecord(
        article_id=str(row["id"]),
        title=str(row["title"]),
        slug=str(row["slug"]),
        original_content=str(row["original_content"]),
        rewritten_content=normalize_optional_text(row["rewritten_content"]),
        references=_load_references(row["references_json"]),
        status=str(row["status"]),
        source=str(row["source"]),
        source_url=normalize_optional_text(row["source_url"]),
        word_count=int(row["word_count"] or 0),
        reading_time=int(row["reading_time"] or 0),
        seo_title=normalize_optional_text(row["seo_title"]),
        meta_description=normalize_optional_text(row["meta_description"]),
        created_at=parse_iso_datetime(str(row["created_at"])),
        updated_at=parse_iso_datetime(str(row["updated_at"])),
    )


def _require_text(value: str | None, *, field_name: str) -> str:
    normalized = normalize_optional_text(value)
    if normalized is None:
        raise ValueError(f"{field_name} is required")
    return normalized


def _slug_for(title: str) -> str:
    slug = generate_slug(title)
    if not slug:
        raise ValueError("title must contain at least one letter or digit")
    return slug


def _validate_status(status: str) -> str:
    normalized = status.strip().lower()
    if normalized not in ARTICLE_STATUSES:
        allowed = ", ".join(sorted(ARTICLE_STATUSES))
        raise ValueError(f"Unsupported status '{status}'. Use one of: {allowed}")
    return normalized


def _dump_references(references: Sequence[ArticleReference]) -> str:
    payload = [{"title": reference.title, "url": reference.url} for reference in references]
    return json.dumps(payload, ensure_ascii=True, separators=(",", ":"))


def _load_references(value: object) -> tuple[ArticleReference, ...]:
    if not isinstance(value, str):
        return ()
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        return ()
    if not isinstance(parsed, list):
        return ()
    references: list[ArticleReference] = []
    for item in cast(list[object], parsed):
        if not isinstance(item, dict):
            continue
        raw = cast(dict[str, object], item)
        url = normalize_optional_text(raw.get("url"))
        if url is None:
            continue
        references.append(
            ArticleReference(title=normalize_optional_text(raw.get("title")) or url, url=url)
        )
    return tuple(references)
