"""Pytest configuration and fixtures for unit tests."""

from collections.abc import Awaitable, Callable
from typing import Any

import pytest

from llamaio.core.db_client import DocumentStore
from llamaio.services import task_service, user_service
from tests.helpers import task_body, user_body


RecordFactory = Callable[..., Awaitable[dict[str, Any]]]


@pytest.fixture
def make_user(store: DocumentStore) -> RecordFactory:
    """Create users through the user service."""

    async def _make_user(name: str = "Alice", **overrides: Any) -> dict[str, Any]:
        return await user_service.create_user(store, body=user_body(name, **overrides))

    return _make_user


@pytest.fixture
def make_task(store: DocumentStore) -> RecordFactory:
    """Create tasks through the task service."""

    async def _make_task(name: str = "Laundry", **overrides: Any) -> dict[str, Any]:
        return await task_service.create_task(store, body=task_body(name, **overrides))

    return _make_task
