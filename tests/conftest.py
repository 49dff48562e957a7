# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from taskboard.cache.layer import DocumentCache
from taskboard.core.config import Settings
from taskboard.main import create_app
from taskboard.services.task_service import TaskService
from taskboard.storage.document_store import DocumentStore

from .fakes import FakeClock


@pytest.fixture()
def data_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "tasks.json"


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(data_path: Path, clock: FakeClock) -> DocumentStore:
    """
    Real on-disk store under tmp_path.

    The cache runs on a FakeClock so TTL expiry is driven by the test.
    """
    return DocumentStore(data_path, cache=DocumentCache(ttl=5.0, timer=clock))


@pytest.fixture()
def service(store: DocumentStore) -> TaskService:
    return TaskService(store)


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        data_dir=tmp_path / "data",
        environment="test",
        log_level="DEBUG",
    )


@pytest.fixture()
def client(settings: Settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client
