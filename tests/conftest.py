from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from blogsmith.dependencies import reset_cached_dependencies
from blogsmith.logging_config import THIRD_PARTY_LOGGERS
from blogsmith.main import create_app
from blogsmith.repositories.article_repository import ArticleRepository
from blogsmith.repositories.database import Database


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:  # pyright: ignore[reportUnusedFunction]
    data_dir = tmp_path / "runtime-data"
    data_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("BLOGSMITH_DATA_DIR", str(data_dir))
    monkeypatch.setenv("BLOGSMITH_TELEMETRY_SINK", "none")
    monkeypatch.delenv("BLOGSMITH_OPENAI_API_KEY", raising=False)
    reset_cached_dependencies()
    yield data_dir
    reset_cached_dependencies()
    for name in ("blogsmith", "blogsmith.telemetry", *THIRD_PARTY_LOGGERS):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()


@pytest.fixture
def repository(tmp_path: Path) -> ArticleRepository:
    database = Database(tmp_path / "articles.db")
    database.initialize()
    return ArticleRepository(database)


@pytest.fixture
def client() -> Iterator[TestClient]:
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
