"""Pytest fixtures for task manager tests."""

import os


# Set env vars before importing anything from task_manager
os.environ["OTEL_ENABLED"] = "false"
os.environ["OTEL_SDK_DISABLED"] = "true"

from collections.abc import Iterator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from task_manager.config import Settings, get_settings
from task_manager.main import app
from task_manager.routes.tasks import get_task_store
from task_manager.store import StorageError, TaskStore

from .fakes import FakeCollection


@pytest.fixture
def collection() -> FakeCollection:
    return FakeCollection()


@pytest.fixture
def store(collection: FakeCollection) -> TaskStore:
    return TaskStore(collection)


@pytest.fixture
def client(store: TaskStore) -> Iterator[TestClient]:
    app.dependency_overrides[get_task_store] = lambda: store
    app.dependency_overrides[get_settings] = lambda: Settings(_env_file=None)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def store_mode_client(client: TestClient) -> TestClient:
    """Client whose payloads are only validated by the store."""
    app.dependency_overrides[get_settings] = lambda: Settings(
        _env_file=None, validation_mode="store"
    )
    return client


@pytest.fixture
def failing_store() -> AsyncMock:
    failing = AsyncMock(spec=TaskStore)
    for name in ("insert", "find_all", "find_by_id", "update_by_id", "delete_by_id"):
        getattr(failing, name).side_effect = StorageError("connection refused")
    return failing


@pytest.fixture
def failing_client(client: TestClient, failing_store: AsyncMock) -> TestClient:
    app.dependency_overrides[get_task_store] = lambda: failing_store
    return client
