from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from blogsmith.config import AppSettings, load_settings, require_llm_credentials
from blogsmith.dependencies import build_search_client, get_settings, reset_cached_dependencies


def test_defaults_place_runtime_files_under_data_dir(_isolated_env: Path) -> None:
    settings = load_settings()

    assert settings.data_dir == _isolated_env.resolve()
    assert settings.db_path == _isolated_env.resolve() / "blogsmith.db"
    assert settings.log_dir == _isolated_env.resolve() / "logs"
    assert settings.source_blog_url == "https://beyondchats.com/blogs/"
    assert settings.rewrite_batch_size == 5
    assert settings.rewrite_references_per_article == 2
    assert settings.openai_model == "gpt-4"
    assert settings.telemetry_sink == "none"


def test_explicit_db_path_is_not_rebased(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLOGSMITH_DB_PATH", str(tmp_path / "elsewhere" / "articles.db"))

    settings = load_settings()

    assert settings.db_path == (tmp_path / "elsewhere" / "articles.db").resolve()


def test_env_overrides_lists_and_urls(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLOGSMITH_CONTENT_SELECTORS", '[".post-body", "main"]')
    monkeypatch.setenv("BLOGSMITH_SOURCE_BLOG_URL", "https://example.com/blog")
    monkeypatch.setenv("BLOGSMITH_API_BASE_URL", "http://api.internal:8080/api/")
    monkeypatch.setenv("BLOGSMITH_REWRITE_BATCH_SIZE", "9")

    settings = load_settings()

    assert settings.content_selectors == [".post-body", "main"]
    assert settings.source_blog_url == "https://example.com/blog/"
    assert settings.api_base_url == "http://api.internal:8080/api"
    assert settings.rewrite_batch_size == 9


def test_unparseable_booleans_fall_back_to_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLOGSMITH_RENDER_ENABLED", "maybe")
    monkeypatch.setenv("BLOGSMITH_REWRITE_REQUIRE_REFERENCES", "yes")

    settings = load_settings()

    assert settings.render_enabled is True
    assert settings.rewrite_require_references is True


def test_invalid_telemetry_sink_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLOGSMITH_TELEMETRY_SINK", "statsd")

    with pytest.raises(ValidationError):
        AppSettings()


def test_require_llm_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    with pytest.raises(ValueError, match="BLOGSMITH_OPENAI_API_KEY"):
        require_llm_credentials(load_settings())

    monkeypatch.setenv("BLOGSMITH_OPENAI_API_KEY", "  sk-test  ")
    settings = load_settings()
    assert settings.openai_api_key == "sk-test"
    require_llm_credentials(settings)


def test_blank_api_key_counts_as_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLOGSMITH_OPENAI_API_KEY", "   ")

    assert load_settings().openai_api_key is None


def test_search_client_excludes_source_host(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BLOGSMITH_SOURCE_BLOG_URL", "https://www.beyondchats.com/blogs/")
    reset_cached_dependencies()

    client = build_search_client(get_settings())

    assert "beyondchats.com" in client.excluded_domains
    assert "youtube.com" in client.excluded_domains
