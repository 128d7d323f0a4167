"""
Batch rewrite orchestration.

One run loads the oldest pending articles and, for each in turn, searches
for references, fetches them, asks the model for a rewrite and persists the
result. Any failure inside a single article is recorded in the batch report
and the run moves on to the next article; only failing to load the queue
aborts the run.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol
from uuid import uuid4

from structlog.contextvars import bind_contextvars, reset_contextvars

from blogsmith.repositories.article_repository import ArticleRecord, ArticleReference
from blogsmith.services.page_fetcher import AdaptivePageFetcher, ScrapedContent
from blogsmith.services.prompts import ReferenceMaterial
from blogsmith.services.reference_search import ReferenceSearchClient
from blogsmith.services.rewrite_engine import RewriteEngine
from blogsmith.telemetry import TelemetryClient

LOGGER = logging.getLogger("blogsmith.pipeline")


class NoUsableReferencesError(RuntimeError):
    pass


class ArticlePersistError(RuntimeError):
    pass


class BatchStage(StrEnum):
    SEARCH = "search"
    FETCH = "fetch"
    REWRITE = "rewrite"
    PERSIST = "persist"


class ArticleStore(Protocol):
    def list_pending(self, limit: int) -> Sequence[ArticleRecord]:
        ...

    def mark_rewritten(
        self,
        article_id: str,
        *,
        rewritten_content: str,
        references: Sequence[ArticleReference],
        seo_title: str | None = None,
        meta_description: str | None = None,
    ) -> ArticleRecord | None:
        ...


@dataclass(frozen=True)
class RewriteSettings:
    batch_size: int = 5
    references_per_article: int = 2
    search_max_retries: int = 3
    article_delay_seconds: float = 5.0
    reference_delay_seconds: float = 2.0
    usable_reference_min_chars: int = 200
    require_references: bool = False
    generate_seo_metadata: bool = False


@dataclass(frozen=True)
class ArticleFailure:
    article_id: str
    title: str
    stage: BatchStage
    error: str


@dataclass(frozen=True)
class BatchReport:
    run_id: str
    attempted: int
    succeeded: int
    failed: int
    failures: list[ArticleFailure] = field(default_factory=list)
    rewritten_ids: list[str] = field(default_factory=list)


class _StageError(Exception):
    def __init__(self, stage: BatchStage, cause: Exception) -> None:
        super().__init__(str(cause))
        self.stage = stage
        self.cause = cause


class RewritePipeline:
    def __init__(
        self,
        *,
        store: ArticleStore,
        search_client: ReferenceSearchClient,
        fetcher: AdaptivePageFetcher,
        engine: RewriteEngine,
        settings: RewriteSettings | None = None,
        telemetry: TelemetryClient | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._search_client = search_client
        self._fetcher = fetcher
        self._engine = engine
        self._settings = settings or RewriteSettings()
        self._telemetry = telemetry or TelemetryClient.disabled()
        self._sleep = sleep

    def run_batch(self, limit: int | None = None) -> BatchReport:
        run_id = f"batch_{uuid4().hex[:12]}"
        batch_limit = self._settings.batch_size if limit is None else max(0, limit)
        context_tokens = bind_contextvars(batch_run_id=run_id)
        try:
            # Store errors here are fatal to the run and propagate.
            pending = list(self._store.list_pending(batch_limit))
            LOGGER.info("rewrite batch loaded pending=%s limit=%s", len(pending), batch_limit)
            self._telemetry.emit("rewrite.batch.started", run_id=run_id, pending=len(pending))
            if not pending:
                LOGGER.info("no pending articles; nothing to rewrite")
                return self._finish(BatchReport(run_id=run_id, attempted=0, succeeded=0, failed=0))

            succeeded = 0
            failures: list[ArticleFailure] = []
            rewritten_ids: list[str] = []
            for index, article in enumerate(pending):
                if index > 0 and self._settings.article_delay_seconds > 0:
                    self._sleep(self._settings.article_delay_seconds)
                failure = self._process_article(article, position=index + 1, total=len(pending))
                if failure is None:
                    succeeded += 1
                    rewritten_ids.append(article.article_id)
                else:
                    failures.append(failure)

            return self._finish(
                BatchReport(
                    run_id=run_id,
                    attempted=len(pending),
                    succeeded=succeeded,
                    failed=len(failures),
                    failures=failures,
                    rewritten_ids=rewritten_ids,
                )
            )
        finally:
            reset_contextvars(**context_tokens)

    def gather_references(self, article: ArticleRecord) -> list[ReferenceMaterial]:
        results = self._search_client.search_with_retry(
            article.title,
            self._settings.references_per_article,
            max_retries=self._settings.search_max_retries,
        )
        LOGGER.info("reference candidates found count=%s", len(results))

        usable: list[ReferenceMaterial] = []
        for index, result in enumerate(results):
            if index > 0 and self._settings.reference_delay_seconds > 0:
                self._sleep(self._settings.reference_delay_seconds)
            scraped = self._fetcher.fetch(result.url)
            if not self._is_usable(scraped):
                LOGGER.info(
                    "reference discarded url=%s chars=%s error=%s",
                    result.url,
                    len(scraped.content),
                    scraped.error,
                )
                continue
            usable.append(
                ReferenceMaterial(
                    title=scraped.title or result.title,
                    url=result.url,
                    content=scraped.content,
                )
            )
        return usable

    def _process_article(self, article: ArticleRecord, *, position: int, total: int) -> ArticleFailure | None:
        context_tokens = bind_contextvars(article_id=article.article_id)
        LOGGER.info(
            "processing article position=%s total=%s title=%s",
            position,
            total,
            article.title,
        )
        try:
            self._rewrite_article(article)
        except _StageError as exc:
            LOGGER.error(
                "article rewrite failed article_id=%s title=%s stage=%s error=%s",
                article.article_id,
                article.title,
                exc.stage.value,
                exc.cause,
                exc_info=exc.cause,
            )
            self._telemetry.emit(
                "rewrite.article.failed",
                article_id=article.article_id,
                stage=exc.stage.value,
                error_type=type(exc.cause).__name__,
            )
            return ArticleFailure(
                article_id=article.article_id,
                title=article.title,
                stage=exc.stage,
                error=f"{type(exc.cause).__name__}: {exc.cause}",
            )
        finally:
            reset_contextvars(**context_tokens)
        return None

    def _rewrite_article(self, article: ArticleRecord) -> None:
        try:
            references = self.gather_references(article)
        except Exception as exc:
            raise _StageError(BatchStage.SEARCH, exc) from exc
        if not references and self._settings.require_references:
            raise _StageError(
                BatchStage.FETCH,
                NoUsableReferencesError("no usable reference content was fetched"),
            )

        try:
            result = self._engine.rewrite(article.original_content, references, article.title)
            seo_title: str | None = None
            meta_description: str | None = None
            if self._settings.generate_seo_metadata:
                seo_title = self._engine.generate_title(article.title, result.content)
                meta_description = self._engine.generate_meta_description(result.content) or None
        except Exception as exc:
            raise _StageError(BatchStage.REWRITE, exc) from exc

        try:
            updated = self._store.mark_rewritten(
                article.article_id,
                rewritten_content=result.content,
                references=[
                    ArticleReference(title=reference.title, url=reference.url)
                    for reference in references
                ],
                seo_title=seo_title,
                meta_description=meta_description,
            )
        except Exception as exc:
            raise _StageError(BatchStage.PERSIST, exc) from exc
        if updated is None:
            raise _StageError(
                BatchStage.PERSIST,
                ArticlePersistError(f"article {article.article_id} no longer exists"),
            )

        LOGGER.info(
            "article rewritten article_id=%s references=%s usage=%s",
            article.article_id,
            len(references),
            result.usage,
        )
        self._telemetry.emit(
            "rewrite.article.succeeded",
            article_id=article.article_id,
            references=len(references),
        )

    def _is_usable(self, scraped: ScrapedContent) -> bool:
        return not scraped.error and len(scraped.content) > self._settings.usable_reference_min_chars

    def _finish(self, report: BatchReport) -> BatchReport:
        LOGGER.info(
            "rewrite batch finished attempted=%s succeeded=%s failed=%s",
            report.attempted,
            report.succeeded,
            report.failed,
        )
        self._telemetry.emit(
            "rewrite.batch.finished",
            run_id=report.run_id,
            attempted=report.attempted,
            succeeded=report.succeeded,
            failed=report.failed,
        )
        return report
