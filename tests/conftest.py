"""Pytest configuration and shared fixtures."""

import logging
import uuid

import logfire
import pytest


logger = logging.getLogger(__name__)


@pytest.fixture(scope="session", autouse=True)
def _quiet_logfire() -> None:
    """Configure Logfire locally so spans are recorded without being exported."""
    logfire.configure(send_to_logfire=False, console=False)


@pytest.fixture
def make_user_id():
    """Factory for unique user IDs."""

    def _make(prefix: str = "user") -> str:
        return f"{prefix}_{uuid.uuid4().hex[:8]}"

    return _make


@pytest.fixture
def owner_id(make_user_id) -> str:
    return make_user_id("owner")


@pytest.fixture
def member_id(make_user_id) -> str:
    return make_user_id("member")
