from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from time import perf_counter, time
from typing import Literal

from reqlog.models.schemas import InsertResult, LogEntry, parse_entries, serialize_entries
from reqlog.observability.metrics import InMemoryMetrics, get_metrics
from reqlog.services.bulk_insert import BulkInserter
from reqlog.storage.base import KVStore

DB_BATCH_SIZE = 30

FlushOutcome = Literal["kv", "database", "failed"]

logger = logging.getLogger(__name__)


async def send_logs_to_db(
    logs: Sequence[LogEntry],
    inserter: BulkInserter,
    metrics: InMemoryMetrics | None = None,
) -> InsertResult:
    """Hand a batch to the bulk inserter. Never raises."""

    if metrics is None:
        metrics = get_metrics()
    logger.info("flush.database", extra={"count": len(logs)})
    try:
        result = await inserter.insert(logs)
    except Exception as exc:  # noqa: BLE001 - must not reach the request path
        logger.exception("flush.database_failed", extra={"count": len(logs)})
        result = InsertResult(ok=False, count=0, error=str(exc))
    else:
        if not result.ok:
            logger.error("flush.database_failed", extra={"count": len(logs), "error": result.error})

    metrics.observe_db_insert(count=result.count, ok=result.ok)
    return result


async def store_in_kv(
    file_name: str,
    storage: KVStore,
    data: Sequence[LogEntry],
    metrics: InMemoryMetrics | None = None,
) -> bool:
    """Overwrite *file_name* with *data* as a pretty-printed JSON array."""

    if metrics is None:
        metrics = get_metrics()
    try:
        await storage.set_item(file_name, serialize_entries(data))
    except Exception:  # noqa: BLE001 - write failure is logged and counted only
        logger.exception("flush.kv_store_failed", extra={"file_name": file_name, "count": len(data)})
        metrics.observe_kv_write(ok=False)
        return False

    logger.info("flush.kv_stored", extra={"file_name": file_name, "count": len(data)})
    metrics.observe_kv_write(ok=True)
    return True


async def _load_stored_batch(
    file_name: str,
    storage: KVStore,
    metrics: InMemoryMetrics,
) -> list[LogEntry]:
    """Return the stored batch; an unreadable one is moved to ``<key>.corrupt-<ms>``."""

    stored = await storage.get_item(file_name)
    try:
        return parse_entries(stored)
    except ValueError:
        quarantine_key = f"{file_name}.corrupt-{int(time() * 1000)}"
        logger.exception("flush.kv_corrupt", extra={"file_name": file_name, "moved_to": quarantine_key})
        metrics.observe_corrupt_batch()
        raw = stored if isinstance(stored, str) else json.dumps(stored, indent=2, ensure_ascii=False)
        await storage.set_item(quarantine_key, raw)
        await storage.remove_item(file_name)
        return []


async def store_batched_logs(
    file_name: str,
    logs: Sequence[LogEntry],
    *,
    storage: KVStore,
    inserter: BulkInserter,
    db_batch_size: int = DB_BATCH_SIZE,
    metrics: InMemoryMetrics | None = None,
) -> FlushOutcome:
    """Merge *logs* into the batch stored under *file_name*.

    Previously stored entries come first. Once the combined batch reaches
    *db_batch_size* it goes to the bulk inserter and the stored key is
    removed whatever the insert result; otherwise the combined batch
    replaces the stored one. A failed insert makes the outcome ``"failed"``
    even though the key is gone.
    """

    if metrics is None:
        metrics = get_metrics()
    start = perf_counter()
    outcome: FlushOutcome = "failed"
    try:
        logger.info("flush.start", extra={"file_name": file_name, "count": len(logs)})
        combined = list(logs)

        if await storage.has_item(file_name):
            old_logs = await _load_stored_batch(file_name, storage, metrics)
            logger.info("flush.kv_loaded", extra={"file_name": file_name, "count": len(old_logs)})
            combined = [*old_logs, *combined]

        if len(combined) >= db_batch_size:
            result = await send_logs_to_db(combined, inserter, metrics)
            await storage.remove_item(file_name)
            outcome = "database" if result.ok else "failed"
        elif await store_in_kv(file_name, storage, combined, metrics):
            outcome = "kv"
    except Exception:  # noqa: BLE001 - flush failures never propagate
        logger.exception("flush.failed", extra={"file_name": file_name, "count": len(logs)})
        outcome = "failed"
    finally:
        elapsed_ms = (perf_counter() - start) * 1000.0
        metrics.observe_flush(elapsed_ms=elapsed_ms, ok=outcome != "failed")

    return outcome
