"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncIterator, Iterator

import pytest
from fastapi.testclient import TestClient

from llamaio.core.config import Settings
from llamaio.core.db_client import DocumentStore
from llamaio.main import create_app


@pytest.fixture
def db_path(tmp_path) -> str:
    """Path of a fresh SQLite file for each test."""
    return str(tmp_path / "llamaio.db")


@pytest.fixture
def test_settings(db_path: str) -> Settings:
    """Settings pointing at the per-test database."""
    return Settings(_env_file=None, database_url=f"sqlite:///{db_path}")


@pytest.fixture
async def store(db_path: str) -> AsyncIterator[DocumentStore]:
    """Connected document store backed by a temporary file."""
    document_store = DocumentStore(db_path)
    await document_store.connect()
    yield document_store
    await document_store.close()


@pytest.fixture
def client(test_settings: Settings) -> Iterator[TestClient]:
    """Test client running the full application lifespan."""
    with TestClient(create_app(test_settings)) as test_client:
        yield test_client
