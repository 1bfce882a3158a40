# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from taskboard.config import Settings
from taskboard.main import create_app
from taskboard.services.task_store import TaskStore
from taskboard.utils.blobs import BlobDirectory
from taskboard.utils.database import create_engine, create_sessionmaker, create_tables


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Settings pointing every piece of storage at the per-test tmp dir."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'taskboard.db'}",
        jwt_secret="test-secret",
        uploads_dir=tmp_path / "uploads",
        broadcast_send_timeout=1.0,
    )


@pytest.fixture()
def client(settings: Settings):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c


@pytest_asyncio.fixture()
async def sessionmaker(tmp_path: Path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await create_tables(engine)
    yield create_sessionmaker(engine)
    await engine.dispose()


@pytest.fixture()
def blobs(tmp_path: Path) -> BlobDirectory:
    return BlobDirectory(tmp_path / "blobs")


@pytest.fixture()
def task_store(sessionmaker, blobs: BlobDirectory) -> TaskStore:
    return TaskStore(sessionmaker, blobs)
