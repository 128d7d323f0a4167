from __future__ import annotations

from datetime import datetime
from typing import Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from blogsmith.repositories.article_repository import ArticleRecord, ArticleReference

ArticleStatus = Literal["original", "rewritten"]


def _normalize_optional_text(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    if not normalized:
        return None
    return normalized


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReferencePayload(CamelModel):
    title: str = Field(default="", max_length=500)
    url: str = Field(max_length=2048)

    @field_validator("url")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        normalized = value.strip()
        parsed = urlparse(normalized)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError("reference url must be an absolute http/https URL")
        return normalized

    def to_reference(self) -> ArticleReference:
        return ArticleReference(title=self.title.strip() or self.url, url=self.url)


class ArticleMetadataPayload(CamelModel):
    word_count: int
    reading_time: int


class ArticlePayload(CamelModel):
    id: str
    title: str
    slug: str
    original_content: str
    rewritten_content: str | None = None
    references: list[ReferencePayload]
    status: ArticleStatus
    source: str
    source_url: str | None = None
    metadata: ArticleMetadataPayload
    seo_title: str | None = None
    meta_description: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: ArticleRecord) -> ArticlePayload:
        return cls(
            id=record.article_id,
            title=record.title,
            slug=record.slug,
            original_content=record.original_content,
            rewritten_content=record.rewritten_content,
            references=[
                ReferencePayload(title=reference.title, url=reference.url)
                for reference in record.references
            ],
            status="rewritten" if record.status == "rewritten" else "original",
            source=record.source,
            source_url=record.source_url,
            metadata=ArticleMetadataPayload(
                word_count=record.word_count,
                reading_time=record.reading_time,
            ),
            seo_title=record.seo_title,
            meta_description=record.meta_description,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class ArticleCreateRequest(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    title: str | None = Field(default=None, max_length=500)
    original_content: str | None = None
    rewritten_content: str | None = None
    references: list[ReferencePayload] = Field(default_factory=list)
    status: ArticleStatus = "original"
    source: str | None = Field(default=None, max_length=64)
    source_url: str | None = Field(default=None, max_length=2048)

    @field_validator("title", "original_content", "rewritten_content", "source", "source_url", mode="before")
    @classmethod
    def _normalize_optional_fields(cls, value: object) -> str | None:
        return _normalize_optional_text(value)


class ArticleUpdateRequest(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    title: str | None = Field(default=None, max_length=500)
    original_content: str | None = None
    rewritten_content: str | None = None
    references: list[ReferencePayload] | None = None
    status: ArticleStatus | None = None
    source: str | None = Field(default=None, max_length=64)
    source_url: str | None = Field(default=None, max_length=2048)
    seo_title: str | None = Field(default=None, max_length=200)
    meta_description: str | None = Field(default=None, max_length=500)


class PaginationPayload(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class ArticleEnvelope(BaseModel):
    success: bool = True
    message: str | None = None
    data: ArticlePayload


class ArticleListEnvelope(BaseModel):
    success: bool = True
    data: list[ArticlePayload]
    pagination: PaginationPayload


class MessageEnvelope(BaseModel):
    success: bool
    message: str


class ScrapeRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    count: int | None = Field(default=None, ge=1, le=50)


class ScrapeSummaryPayload(BaseModel):
    total: int
    saved: int
    skipped: int


class ScrapeResultPayload(BaseModel):
    saved: list[ArticlePayload]
    skipped: list[str]
    summary: ScrapeSummaryPayload


class ScrapeEnvelope(BaseModel):
    success: bool = True
    message: str
    data: ScrapeResultPayload | list[ArticlePayload]


class LastScrapedPayload(CamelModel):
    title: str
    date: datetime


class ScrapeStatusPayload(CamelModel):
    total: int
    original: int
    rewritten: int
    pending_rewrite: int
    last_scraped: LastScrapedPayload | None = None


class ScrapeStatusEnvelope(BaseModel):
    success: bool = True
    data: ScrapeStatusPayload
