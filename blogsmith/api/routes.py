from __future__ import annotations

import logging
import math
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query, Response
from fastapi.responses import JSONResponse
from structlog.contextvars import bind_contextvars, reset_contextvars

from blogsmith.config import AppSettings
from blogsmith.dependencies import (
    get_article_repository,
    get_settings,
    get_source_import_service,
    get_telemetry,
)
from blogsmith.models.article_contracts import (
    ArticleCreateRequest,
    ArticleEnvelope,
    ArticleListEnvelope,
    ArticlePayload,
    ArticleUpdateRequest,
    LastScrapedPayload,
    MessageEnvelope,
    PaginationPayload,
    ScrapeEnvelope,
    ScrapeRequest,
    ScrapeResultPayload,
    ScrapeStatusEnvelope,
    ScrapeStatusPayload,
    ScrapeSummaryPayload,
)
from blogsmith.repositories.article_repository import (
    ARTICLE_STATUS_ORIGINAL,
    ARTICLE_STATUS_REWRITTEN,
    DEFAULT_SORT,
    ArticleNotFoundError,
    ArticleRepository,
)
from blogsmith.services.http_fetch import HttpFetchError
from blogsmith.services.source_import import SourceImportService
from blogsmith.telemetry import TelemetryClient

LOGGER = logging.getLogger("blogsmith.api")

router = APIRouter(prefix="/api")

API_VERSION = "1.0.0"


@router.get("", tags=["system"], operation_id="api_index")
def api_index() -> dict[str, Any]:
    return {
        "success": True,
        "message": "blogsmith API",
        "version": API_VERSION,
        "endpoints": {
            "articles": {
                "list": "GET /api/articles",
                "single": "GET /api/articles/:id",
                "create": "POST /api/articles",
                "update": "PUT /api/articles/:id",
                "delete": "DELETE /api/articles/:id",
            },
            "scrape": {
                "beyondchats": "POST /api/scrape/beyondchats",
                "status": "GET /api/scrape/status",
            },
        },
    }


@router.get(
    "/articles",
    response_model=ArticleListEnvelope,
    tags=["articles"],
    operation_id="list_articles",
)
def list_articles(
    repository: Annotated[ArticleRepository, Depends(get_article_repository)],
    status: Annotated[str | None, Query()] = None,
    source: Annotated[str | None, Query()] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    sort: Annotated[str, Query()] = DEFAULT_SORT,
) -> ArticleListEnvelope:
    records = repository.list_articles(
        status=status,
        source=source,
        page=page,
        limit=limit,
        sort=sort,
    )
    total = repository.count_articles(status=status, source=source)
    return ArticleListEnvelope(
        data=[ArticlePayload.from_record(record) for record in records],
        pagination=PaginationPayload(
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit) if total else 0,
        ),
    )


@router.get(
    "/articles/{article_id}",
    response_model=ArticleEnvelope,
    tags=["articles"],
    operation_id="get_article",
)
def get_article(
    article_id: str,
    repository: Annotated[ArticleRepository, Depends(get_article_repository)],
) -> ArticleEnvelope:
    record = repository.get_article(article_id)
    if record is None:
        raise ArticleNotFoundError(article_id)
    return ArticleEnvelope(data=ArticlePayload.from_record(record))


@router.post(
    "/articles",
    response_model=ArticleEnvelope,
    status_code=201,
    tags=["articles"],
    operation_id="create_article",
)
def create_article(
    request: ArticleCreateRequest,
    repository: Annotated[ArticleRepository, Depends(get_article_repository)],
    telemetry: Annotated[TelemetryClient, Depends(get_telemetry)],
) -> ArticleEnvelope:
    if request.title is None or request.original_content is None:
        raise ValueError("Title and originalContent are required")
    record = repository.create_article(
        title=request.title,
        original_content=request.original_content,
        source=request.source,
        source_url=request.source_url,
        status=request.status,
        rewritten_content=request.rewritten_content,
        references=[reference.to_reference() for reference in request.references],
    )
    LOGGER.info("article created article_id=%s slug=%s", record.article_id, record.slug)
    telemetry.emit("article.created", article_id=record.article_id, source=record.source)
    return ArticleEnvelope(
        message="Article created successfully",
        data=ArticlePayload.from_record(record),
    )


@router.put(
    "/articles/{article_id}",
    response_model=ArticleEnvelope,
    tags=["articles"],
    operation_id="update_article",
)
def update_article(
    article_id: str,
    request: ArticleUpdateRequest,
    repository: Annotated[ArticleRepository, Depends(get_article_repository)],
    telemetry: Annotated[TelemetryClient, Depends(get_telemetry)],
) -> ArticleEnvelope:
    context_tokens = bind_contextvars(article_id=article_id)
    try:
        record = repository.update_article(
            article_id,
            title=request.title,
            original_content=request.original_content,
            rewritten_content=request.rewritten_content,
            references=(
                None
                if request.references is None
                else [reference.to_reference() for reference in request.references]
            ),
            status=request.status,
            source=request.source,
            source_url=request.source_url,
            seo_title=request.seo_title,
            meta_description=request.meta_description,
        )
        if record is None:
            raise ArticleNotFoundError(article_id)
        LOGGER.info("article updated article_id=%s status=%s", record.article_id, record.status)
    finally:
        reset_contextvars(**context_tokens)
    telemetry.emit("article.updated", article_id=record.article_id, status=record.status)
    return ArticleEnvelope(
        message="Article updated successfully",
        data=ArticlePayload.from_record(record),
    )


@router.delete(
    "/articles/{article_id}",
    response_model=MessageEnvelope,
    tags=["articles"],
    operation_id="delete_article",
)
def delete_article(
    article_id: str,
    repository: Annotated[ArticleRepository, Depends(get_article_repository)],
    telemetry: Annotated[TelemetryClient, Depends(get_telemetry)],
) -> MessageEnvelope:
    if not repository.delete_article(article_id):
        raise ArticleNotFoundError(article_id)
    LOGGER.info("article deleted article_id=%s", article_id)
    telemetry.emit("article.deleted", article_id=article_id)
    return MessageEnvelope(success=True, message="Article deleted successfully")


@router.post(
    "/scrape/beyondchats",
    response_model=ScrapeEnvelope,
    status_code=201,
    tags=["scrape"],
    operation_id="scrape_source_blog",
)
def scrape_source_blog(
    response: Response,
    settings: Annotated[AppSettings, Depends(get_settings)],
    service: Annotated[SourceImportService, Depends(get_source_import_service)],
    request: Annotated[ScrapeRequest | None, Body()] = None,
) -> ScrapeEnvelope | JSONResponse:
    count = settings.scrape_default_count
    if request is not None and request.count is not None:
        count = request.count
    LOGGER.info("source scrape requested count=%s", count)
    try:
        summary = service.import_oldest(count)
    except HttpFetchError as exc:
        LOGGER.error("source scrape failed error=%s", exc)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Scraping failed", "error": str(exc)},
        )

    if summary.total == 0:
        response.status_code = 200
        return ScrapeEnvelope(message="No articles found to scrape", data=[])

    return ScrapeEnvelope(
        message=f"Scraped and saved {len(summary.saved)} articles",
        data=ScrapeResultPayload(
            saved=[ArticlePayload.from_record(record) for record in summary.saved],
            skipped=summary.skipped,
            summary=ScrapeSummaryPayload(
                total=summary.total,
                saved=len(summary.saved),
                skipped=len(summary.skipped),
            ),
        ),
    )


@router.get(
    "/scrape/status",
    response_model=ScrapeStatusEnvelope,
    tags=["scrape"],
    operation_id="scrape_status",
)
def scrape_status(
    repository: Annotated[ArticleRepository, Depends(get_article_repository)],
) -> ScrapeStatusEnvelope:
    counts = repository.status_counts()
    original = counts.get(ARTICLE_STATUS_ORIGINAL, 0)
    rewritten = counts.get(ARTICLE_STATUS_REWRITTEN, 0)
    latest = repository.latest_created()
    return ScrapeStatusEnvelope(
        data=ScrapeStatusPayload(
            total=sum(counts.values()),
            original=original,
            rewritten=rewritten,
            pending_rewrite=original,
            last_scraped=(
                None
                if latest is None
                else LastScrapedPayload(title=latest.title, date=latest.created_at)
            ),
        )
    )
