from __future__ import annotations

from functools import lru_cache
from urllib.parse import urlparse

from blogsmith.config import AppSettings, load_settings
from blogsmith.repositories.article_repository import ArticleRepository
from blogsmith.repositories.database import Database
from blogsmith.services.article_api_client import ArticleApiClient
from blogsmith.services.content_extraction import ExtractionProfile
from blogsmith.services.http_fetch import HttpClient
from blogsmith.services.llm_client import OpenAIChatModel
from blogsmith.services.page_fetcher import AdaptivePageFetcher
from blogsmith.services.page_renderer import PlaywrightPageRenderer
from blogsmith.services.reference_search import ReferenceSearchClient
from blogsmith.services.rewrite_engine import RewriteEngine
from blogsmith.services.rewrite_pipeline import ArticleStore, RewritePipeline, RewriteSettings
from blogsmith.services.source_import import SourceImportService
from blogsmith.services.source_lister import ListingProfile, SourceSiteLister
from blogsmith.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_database() -> Database:
    database = Database(get_settings().db_path)
    database.initialize()
    return database


@lru_cache(maxsize=1)
def get_article_repository() -> ArticleRepository:
    return ArticleRepository(get_database())


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


def build_http_client(settings: AppSettings) -> HttpClient:
    return HttpClient(
        user_agent=settings.user_agent,
        timeout_seconds=settings.static_fetch_timeout_seconds,
        max_redirects=settings.static_fetch_max_redirects,
    )


def build_extraction_profile(settings: AppSettings) -> ExtractionProfile:
    return ExtractionProfile.from_lists(
        removal_selectors=settings.removal_selectors,
        content_selectors=settings.content_selectors,
        wait_selectors=settings.render_wait_selectors,
        min_content_chars=settings.content_min_chars,
    )


def build_page_fetcher(settings: AppSettings, *, telemetry: TelemetryClient) -> AdaptivePageFetcher:
    renderer = None
    if settings.render_enabled:
        renderer = PlaywrightPageRenderer(
            user_agent=settings.user_agent,
            navigation_timeout_ms=settings.render_navigation_timeout_ms,
            selector_timeout_ms=settings.render_selector_timeout_ms,
            sandbox=settings.render_sandbox,
        )
    return AdaptivePageFetcher(
        http_client=build_http_client(settings),
        renderer=renderer,
        profile=build_extraction_profile(settings),
        escalation_min_chars=settings.escalation_min_chars,
        telemetry=telemetry,
    )


def build_search_client(settings: AppSettings) -> ReferenceSearchClient:
    excluded = list(settings.search_excluded_domains)
    source_host = urlparse(settings.source_blog_url).hostname
    if source_host:
        bare_host = source_host.lower().removeprefix("www.")
        if bare_host not in excluded:
            excluded.append(bare_host)
    return ReferenceSearchClient(
        http_client=build_http_client(settings),
        search_url=settings.search_base_url,
        query_modifier=settings.search_query_modifier,
        excluded_domains=excluded,
        timeout_seconds=settings.search_timeout_seconds,
        retry_base_delay_seconds=settings.search_retry_base_delay_seconds,
    )


def build_rewrite_engine(settings: AppSettings) -> RewriteEngine:
    model = OpenAIChatModel(
        api_key=settings.openai_api_key or "",
        model=settings.openai_model,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.llm_timeout_seconds,
    )
    return RewriteEngine(
        model=model,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
    )


def build_source_lister(settings: AppSettings) -> SourceSiteLister:
    return SourceSiteLister(
        http_client=build_http_client(settings),
        base_url=settings.source_blog_url,
        source_name=settings.source_name,
        profile=ListingProfile(
            pagination_link_selector=settings.pagination_link_selector,
            pagination_page_pattern=settings.pagination_page_pattern,
            container_selectors=tuple(settings.listing_container_selectors),
            title_link_selectors=tuple(settings.listing_title_link_selectors),
            content_selectors=tuple(settings.source_content_selectors),
            removal_selectors=tuple(settings.removal_selectors),
        ),
        link_delay_seconds=settings.source_link_delay_seconds,
    )


def get_source_import_service() -> SourceImportService:
    settings = get_settings()
    return SourceImportService(
        lister=build_source_lister(settings),
        repository=get_article_repository(),
        telemetry=get_telemetry(),
    )


def build_rewrite_pipeline(
    settings: AppSettings,
    *,
    via_api: bool = False,
) -> RewritePipeline:
    telemetry = get_telemetry()
    store: ArticleStore
    if via_api:
        store = ArticleApiClient(http_client=build_http_client(settings), base_url=settings.api_base_url)
    else:
        store = get_article_repository()
    return RewritePipeline(
        store=store,
        search_client=build_search_client(settings),
        fetcher=build_page_fetcher(settings, telemetry=telemetry),
        engine=build_rewrite_engine(settings),
        settings=RewriteSettings(
            batch_size=settings.rewrite_batch_size,
            references_per_article=settings.rewrite_references_per_article,
            search_max_retries=settings.search_max_retries,
            article_delay_seconds=settings.rewrite_article_delay_seconds,
            reference_delay_seconds=settings.rewrite_reference_delay_seconds,
            usable_reference_min_chars=settings.usable_reference_min_chars,
            require_references=settings.rewrite_require_references,
            generate_seo_metadata=settings.rewrite_generate_seo_metadata,
        ),
        telemetry=telemetry,
    )


def reset_cached_dependencies() -> None:
    get_article_repository.cache_clear()
    get_database.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
