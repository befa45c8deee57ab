from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from reqlog.api.metrics import router as metrics_router
from reqlog.config import Settings, get_settings
from reqlog.observability.logging import configure_logging
from reqlog.observability.middleware import RequestLogMiddleware
from reqlog.services.batcher import LogBatcher, build_batcher


def create_app(settings: Settings | None = None, batcher: LogBatcher | None = None) -> FastAPI:
    if settings is None:
        settings = get_settings()
    configure_logging(settings.log_level.upper())
    # An empty batcher is falsy (it has __len__), so compare against None.
    if batcher is None:
        batcher = build_batcher(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await batcher.close()

    app = FastAPI(title="Request Log", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.log_batcher = batcher
    app.add_middleware(RequestLogMiddleware, batcher=batcher)
    app.include_router(metrics_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
