"""Pytest configuration and fixtures for unit tests."""

import pytest

from taskboard.core.config import settings
from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches taskboard.core.db_client functions to use InMemoryDBClient.

    get_full_list is left in place; it pages through the patched list_records.
    Retry backoff is disabled so failure tests stay fast.
    """
    monkeypatch.setattr("taskboard.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("taskboard.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("taskboard.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("taskboard.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("taskboard.core.db_client.upsert_record", in_memory_db.upsert_record)
    monkeypatch.setattr("taskboard.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("taskboard.core.db_client.get_first_record", in_memory_db.get_first_record)

    monkeypatch.setattr(settings, "write_retry_base_delay", 0.0)

    return in_memory_db
