from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from blogsmith.services.content_extraction import (
    DEFAULT_CONTENT_SELECTORS,
    DEFAULT_REMOVAL_SELECTORS,
    DEFAULT_WAIT_SELECTORS,
)
from blogsmith.services.http_fetch import DEFAULT_USER_AGENT
from blogsmith.services.reference_search import DEFAULT_EXCLUDED_DOMAINS
from blogsmith.services.source_lister import (
    DEFAULT_CONTAINER_SELECTORS,
    DEFAULT_PAGINATION_LINK_SELECTOR,
    DEFAULT_PAGINATION_PAGE_PATTERN,
    DEFAULT_SOURCE_CONTENT_SELECTORS,
    DEFAULT_TITLE_LINK_SELECTORS,
)

DEFAULT_DATA_DIR = ".blogsmith"
_DATA_DIR_RELATIVE_DEFAULTS: tuple[tuple[str, Path], ...] = (
    ("db_path", Path("blogsmith.db")),
    ("log_dir", Path("logs")),
)
_PATH_FIELDS: tuple[str, ...] = (
    "data_dir",
    *(field_name for field_name, _ in _DATA_DIR_RELATIVE_DEFAULTS),
)
_BOOLEAN_COERCION_FIELDS: tuple[str, ...] = (
    "render_enabled",
    "render_sandbox",
    "rewrite_require_references",
    "rewrite_generate_seo_metadata",
    "telemetry_enabled",
)


def _default_in_data_dir(relative_path: Path) -> Path:
    return Path(DEFAULT_DATA_DIR) / relative_path


def _data_dir_default_note(relative_path: Path) -> str:
    return f"Defaults to `${{BLOGSMITH_DATA_DIR}}/{relative_path}` when not explicitly set."


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _parse_bool_with_default(value: Any, *, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value == 1:
            return True
        if value == 0:
            return False
        return default
    if not isinstance(value, str):
        return default

    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _normalize_optional_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    return normalized or None


class AppSettings(BaseSettings):
    """
    Runtime configuration for the API, the import flow and the rewrite batch.

    Every option is read from a `BLOGSMITH_*` environment variable (or `.env`).
    List options take JSON arrays, e.g. `BLOGSMITH_CONTENT_SELECTORS='["article", "main"]'`.
    """

    model_config = SettingsConfigDict(
        env_prefix="BLOGSMITH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Paths and logging.
    data_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR),
        description="Root runtime directory for the article database and logs.",
    )
    db_path: Path = Field(
        default=_default_in_data_dir(Path("blogsmith.db")),
        description=f"SQLite database path. {_data_dir_default_note(Path('blogsmith.db'))}",
    )
    log_dir: Path = Field(
        default=_default_in_data_dir(Path("logs")),
        description=f"Directory for application logs. {_data_dir_default_note(Path('logs'))}",
    )
    log_level: str = Field(
        default="INFO",
        description="Console log level (DEBUG, INFO, WARNING, ERROR). The file log is always DEBUG.",
    )

    # API server.
    host: str = Field(default="127.0.0.1", description="Bind address for `blogsmith-serve`.")
    port: int = Field(default=5000, ge=1, le=65535, description="Port for `blogsmith-serve`.")

    # Source blog.
    source_blog_url: str = Field(
        default="https://beyondchats.com/blogs/",
        description="Index URL of the source blog; page N lives at `<url>page/N/`.",
    )
    source_name: str = Field(
        default="beyondchats",
        description="Value stored in `source` for imported articles.",
    )
    source_link_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Pause between article fetches while importing from the source blog.",
    )
    scrape_default_count: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Number of articles imported when a scrape request does not specify a count.",
    )

    # Static HTTP fetch.
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="Browser-like User-Agent sent on page and search requests.",
    )
    static_fetch_timeout_seconds: float = Field(
        default=15.0,
        ge=1.0,
        description="Timeout for a single static page request.",
    )
    static_fetch_max_redirects: int = Field(
        default=5,
        ge=0,
        description="Maximum redirects followed by the static fetch path.",
    )

    # Browser rendering.
    render_enabled: bool = Field(
        default=True,
        description="Escalate short or failed static fetches to a headless Chromium render.",
    )
    render_sandbox: bool = Field(
        default=True,
        description="Run Chromium with its sandbox enabled.",
    )
    render_navigation_timeout_ms: int = Field(
        default=30_000,
        ge=1_000,
        description="Upper bound for page navigation and network idle during a render.",
    )
    render_selector_timeout_ms: int = Field(
        default=5_000,
        ge=0,
        description="How long a render waits for a content selector before extracting anyway.",
    )
    escalation_min_chars: int = Field(
        default=500,
        ge=0,
        description="Static results shorter than this many characters are re-fetched with a render.",
    )

    # Extraction profile.
    removal_selectors: list[str] = Field(
        default_factory=lambda: list(DEFAULT_REMOVAL_SELECTORS),
        description="Elements stripped from a page before extraction.",
    )
    content_selectors: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CONTENT_SELECTORS),
        description="Content containers tried in order; the first long enough wins.",
    )
    render_wait_selectors: list[str] = Field(
        default_factory=lambda: list(DEFAULT_WAIT_SELECTORS),
        description="Selectors a render waits for before extracting.",
    )
    content_min_chars: int = Field(
        default=200,
        ge=0,
        description="Minimum text length for a content container to be accepted.",
    )
    listing_container_selectors: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CONTAINER_SELECTORS),
        description="Post containers on source blog listing pages.",
    )
    listing_title_link_selectors: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TITLE_LINK_SELECTORS),
        description="Title anchors inside a listing container, tried in order.",
    )
    pagination_link_selector: str = Field(
        default=DEFAULT_PAGINATION_LINK_SELECTOR,
        description="Anchors on the blog index that point at numbered pages.",
    )
    pagination_page_pattern: str = Field(
        default=DEFAULT_PAGINATION_PAGE_PATTERN,
        description="Regex with one group capturing the page number from a pagination href.",
    )
    source_content_selectors: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SOURCE_CONTENT_SELECTORS),
        description="Content containers tried in order on source blog article pages.",
    )

    # Reference search.
    search_base_url: str = Field(
        default="https://www.google.com/search",
        description="Search results page queried for reference articles.",
    )
    search_timeout_seconds: float = Field(default=10.0, ge=1.0, description="Search request timeout.")
    search_query_modifier: str = Field(
        default="blog OR article",
        description="Text appended to every search query to favour article results.",
    )
    search_excluded_domains: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_DOMAINS),
        description="Hosts never used as references. The source blog host is always added.",
    )
    search_max_retries: int = Field(default=3, ge=1, le=10, description="Search attempts per article.")
    search_retry_base_delay_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="After failed attempt N, the next attempt waits N times this many seconds.",
    )

    # Language model.
    openai_api_key: str | None = Field(
        default=None,
        description="API key for the chat-completions endpoint. Required by the rewrite batch.",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Override for OpenAI-compatible endpoints; unset uses the vendor default.",
    )
    openai_model: str = Field(default="gpt-4", description="Model used for rewrites.")
    llm_temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Rewrite temperature.")
    llm_max_tokens: int = Field(default=4000, ge=1, description="Rewrite completion token limit.")
    llm_timeout_seconds: float = Field(default=120.0, ge=1.0, description="Model request timeout.")

    # Rewrite batch.
    rewrite_batch_size: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum pending articles processed per batch run.",
    )
    rewrite_references_per_article: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Search results fetched as references for each article.",
    )
    rewrite_article_delay_seconds: float = Field(
        default=5.0,
        ge=0.0,
        description="Pause between articles in a batch.",
    )
    rewrite_reference_delay_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="Pause between reference fetches for one article.",
    )
    usable_reference_min_chars: int = Field(
        default=200,
        ge=0,
        description="References with this much content or less are discarded.",
    )
    rewrite_require_references: bool = Field(
        default=False,
        description="Fail an article when none of its references yield usable content.",
    )
    rewrite_generate_seo_metadata: bool = Field(
        default=False,
        description="Also generate an SEO title and meta description for each rewrite.",
    )

    # Remote publishing.
    api_base_url: str = Field(
        default="http://localhost:5000/api",
        description="Article API used by `blogsmith-rewrite --via-api`.",
    )

    # Telemetry.
    telemetry_enabled: bool = Field(default=True, description="Emit telemetry events.")
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description="Telemetry destination: `log` writes structured events, `none` drops them.",
    )

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("BLOGSMITH_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("BLOGSMITH_TELEMETRY_SINK must be set to: none, log.")

    @field_validator("source_blog_url", mode="before")
    @classmethod
    def _normalize_source_blog_url(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError("BLOGSMITH_SOURCE_BLOG_URL must be a non-empty URL.")
        normalized = value.strip()
        return normalized if normalized.endswith("/") else f"{normalized}/"

    @field_validator("api_base_url", "search_base_url", mode="before")
    @classmethod
    def _normalize_base_urls(cls, value: Any, info: ValidationInfo) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"BLOGSMITH_{str(info.field_name).upper()} must be a non-empty URL.")
        return value.strip().rstrip("/")

    @field_validator(*_PATH_FIELDS, mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)

    @field_validator(*_BOOLEAN_COERCION_FIELDS, mode="before")
    @classmethod
    def _normalize_booleans(cls, value: Any, info: ValidationInfo) -> bool:
        field_name = info.field_name
        assert field_name is not None
        default_value = cls.model_fields[field_name].default
        assert isinstance(default_value, bool)
        return _parse_bool_with_default(value, default=default_value)

    @field_validator("openai_api_key", "openai_base_url", mode="before")
    @classmethod
    def _normalize_optional_strings(cls, value: Any) -> str | None:
        return _normalize_optional_text(value)


def require_llm_credentials(settings: AppSettings) -> None:
    errors: list[str] = []
    if settings.openai_api_key is None:
        errors.append("BLOGSMITH_OPENAI_API_KEY is required to run rewrites.")
    if not settings.openai_model.strip():
        errors.append("BLOGSMITH_OPENAI_MODEL must not be empty.")

    if errors:
        bullets = "\n".join(f"- {message}" for message in errors)
        raise ValueError(f"Invalid configuration for the rewrite batch:\n{bullets}")


def _apply_path_defaults(settings: AppSettings) -> AppSettings:
    updates: dict[str, Path] = {}
    for field_name, relative_default in _DATA_DIR_RELATIVE_DEFAULTS:
        if field_name in settings.model_fields_set:
            continue
        updates[field_name] = settings.data_dir / relative_default
    if not updates:
        return settings
    return settings.model_copy(update=updates)


def _resolve_path_fields(settings: AppSettings) -> AppSettings:
    resolved_updates = {
        field_name: _resolve_path(getattr(settings, field_name))
        for field_name in _PATH_FIELDS
    }
    return settings.model_copy(update=resolved_updates)


def load_settings() -> AppSettings:
    settings = AppSettings()
    settings = _apply_path_defaults(settings)
    return _resolve_path_fields(settings)
