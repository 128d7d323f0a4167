from __future__ import annotations

import logging
from dataclasses import dataclass, field

from blogsmith.repositories.article_repository import (
    ArticleRecord,
    ArticleRepository,
    DuplicateSlugError,
)
from blogsmith.services.source_lister import SourceSiteLister
from blogsmith.telemetry import TelemetryClient

LOGGER = logging.getLogger("blogsmith.source")


@dataclass(frozen=True)
class ImportSummary:
    total: int
    saved: list[ArticleRecord] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class SourceImportService:
    def __init__(
        self,
        *,
        lister: SourceSiteLister,
        repository: ArticleRepository,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        self._lister = lister
        self._repository = repository
        self._telemetry = telemetry or TelemetryClient.disabled()

    def import_oldest(self, count: int) -> ImportSummary:
        """Scrape the oldest source posts and store the ones not already present."""
        drafts = self._lister.oldest_articles(count)
        saved: list[ArticleRecord] = []
        skipped: list[str] = []
        failed: list[str] = []
        for draft in drafts:
            if self._repository.find_by_slug(draft.slug) is not None:
                skipped.append(draft.title)
                continue
            try:
                record = self._repository.create_article(
                    title=draft.title,
                    original_content=draft.original_content,
                    source=draft.source,
                    source_url=draft.source_url,
                    status=draft.status,
                )
            except DuplicateSlugError:
                skipped.append(draft.title)
                continue
            except ValueError as exc:
                LOGGER.error("source article save failed title=%s error=%s", draft.title, exc)
                failed.append(draft.title)
                continue
            LOGGER.info("source article saved article_id=%s title=%s", record.article_id, record.title)
            saved.append(record)

        self._telemetry.emit(
            "source.import.finished",
            requested=count,
            scraped=len(drafts),
            saved=len(saved),
            skipped=len(skipped),
            failed=len(failed),
        )
        return ImportSummary(total=len(drafts), saved=saved, skipped=skipped, failed=failed)
