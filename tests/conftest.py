from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from itertools import count

import pytest
from fakes import RecordingInserter
from fastapi import FastAPI, HTTPException
from httpx import ASGITransport, AsyncClient

from reqlog.config import get_settings
from reqlog.main import create_app
from reqlog.models.schemas import LogEntry
from reqlog.observability.metrics import reset_metrics
from reqlog.services.batcher import LogBatcher
from reqlog.storage import MemoryStorage


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("LOG_ENV", "development")
    monkeypatch.setenv("LOG_STORAGE_DRIVER", "fs")
    monkeypatch.setenv("LOG_STORAGE_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("LOG_DB_SINK", "log")
    monkeypatch.delenv("ENABLE_METRICS_ENDPOINT", raising=False)
    get_settings.cache_clear()
    reset_metrics()

    yield

    get_settings.cache_clear()
    reset_metrics()


@pytest.fixture
def make_entry() -> Callable[..., LogEntry]:
    counter = count()

    def _make(path: str | None = None, **overrides) -> LogEntry:
        n = next(counter)
        fields = {
            "timestamp": "2026-10-17T09:00:00.000Z",
            "method": "GET",
            "path": path or f"/items/{n}",
            "url": path or f"/items/{n}",
            "client_ip": "127.0.0.1",
            "user_agent": "pytest",
            "response_time": 5,
            "status_code": 200,
            "start_time": 1_760_000_000_000 + n,
        }
        fields.update(overrides)
        return LogEntry(**fields)

    return _make


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def inserter() -> RecordingInserter:
    return RecordingInserter()


@pytest.fixture
def app_factory() -> Callable[..., FastAPI]:
    def _build(batcher: LogBatcher | None = None) -> FastAPI:
        app = create_app(batcher=batcher)

        @app.get("/items/{item_id}")
        async def read_item(item_id: str) -> dict[str, str]:
            return {"item_id": item_id}

        @app.get("/missing")
        async def missing() -> dict[str, str]:
            raise HTTPException(status_code=404, detail="Not found")

        @app.get("/boom")
        async def boom() -> dict[str, str]:
            raise RuntimeError("kaboom")

        return app

    return _build


@pytest.fixture
async def api_client(app_factory) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app_factory(), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
