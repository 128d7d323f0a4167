from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

# Slug uniqueness is checked by the repository before insert; the slug
# index is not UNIQUE.
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS articles (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    slug TEXT NOT NULL,
    original_content TEXT NOT NULL,
    rewritten_content TEXT NULL,
    references_json TEXT NOT NULL DEFAULT '[]',
    status TEXT NOT NULL,
    source TEXT NOT NULL,
    source_url TEXT NULL,
    word_count INTEGER NOT NULL DEFAULT 0,
    reading_time INTEGER NOT NULL DEFAULT 0,
    seo_title TEXT NULL,
    meta_description TEXT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_articles_slug
ON articles(slug);

CREATE INDEX IF NOT EXISTS idx_articles_status_created
ON articles(status, created_at);

CREATE INDEX IF NOT EXISTS idx_articles_created
ON articles(created_at DESC);
"""


class Database:
    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self.connection() as conn:
            conn.executescript(SCHEMA_SQL)

    def ping(self) -> None:
        """Raise `sqlite3.Error` when the store cannot be opened or read."""
        with self.connection() as conn:
            conn.execute("SELECT 1 FROM articles LIMIT 1").fetchall()
