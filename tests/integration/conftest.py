"""Pytest configuration and fixtures for integration tests."""

from collections.abc import AsyncIterator, Iterator

import pytest
from fastapi.testclient import TestClient

from taskboard.core import db_client
from taskboard.core.config import settings


@pytest.fixture
def db_path(tmp_path, monkeypatch) -> str:
    """Point the gateway at a fresh database file."""
    path = str(tmp_path / "taskboard_test.db")
    monkeypatch.setattr(settings, "sqlite_db_path", path)
    monkeypatch.setattr(settings, "write_retry_base_delay", 0.0)
    return path


@pytest.fixture
async def sqlite_db(db_path) -> AsyncIterator[str]:
    """Initialized SQLite database, closed after the test."""
    await db_client.init_db()
    yield db_path
    await db_client.close_connection()


@pytest.fixture
def client(db_path, monkeypatch) -> Iterator[TestClient]:
    """FastAPI test client running the app lifespan against a temporary database."""
    monkeypatch.setattr("taskboard.main.configure_logfire", lambda: None)
    from taskboard.main import app

    with TestClient(app) as test_client:
        yield test_client
