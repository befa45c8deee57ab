from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from reqlog.config import Settings
from reqlog.services.batcher import LogBatcher


router = APIRouter(prefix="/api", tags=["metrics"])


@router.get("/metrics")
async def metrics(request: Request) -> dict:
    settings: Settings = request.app.state.settings
    if not settings.enable_metrics_endpoint:
        raise HTTPException(status_code=404, detail="Not found")

    batcher: LogBatcher = request.app.state.log_batcher
    payload = batcher.metrics.snapshot()
    payload["buffer"] = {
        "file_name": batcher.file_name,
        "buffered_entries": len(batcher),
        "kv_batch_size": batcher.kv_batch_size,
        "pending_flushes": batcher.pending_flushes,
    }
    return payload
