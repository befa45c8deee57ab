from __future__ import annotations

import asyncio
import logging

from reqlog.config import Settings
from reqlog.models.schemas import LogEntry
from reqlog.observability.metrics import InMemoryMetrics, get_metrics
from reqlog.services.bulk_insert import BulkInserter, build_bulk_inserter
from reqlog.services.flush import DB_BATCH_SIZE, FlushOutcome, store_batched_logs
from reqlog.storage import KVStore, build_storage

logger = logging.getLogger(__name__)


class LogBatcher:
    """Owns the in-memory batch of finished requests and schedules flushes.

    ``add`` swaps the buffer out before scheduling a flush, so entries that
    arrive while a flush is running land in a fresh buffer.
    """

    def __init__(
        self,
        storage: KVStore,
        inserter: BulkInserter,
        *,
        file_name: str,
        kv_batch_size: int,
        db_batch_size: int = DB_BATCH_SIZE,
        metrics: InMemoryMetrics | None = None,
    ) -> None:
        if kv_batch_size < 1:
            raise ValueError("kv_batch_size must be >= 1")
        self.storage = storage
        self.inserter = inserter
        self.file_name = file_name
        self.kv_batch_size = kv_batch_size
        self.db_batch_size = db_batch_size
        self._metrics = metrics
        self._entries: list[LogEntry] = []
        self._pending: set[asyncio.Task[FlushOutcome]] = set()
        self._flush_lock = asyncio.Lock()

    @property
    def metrics(self) -> InMemoryMetrics:
        return self._metrics if self._metrics is not None else get_metrics()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[LogEntry, ...]:
        return tuple(self._entries)

    @property
    def pending_flushes(self) -> int:
        return len(self._pending)

    def take(self) -> list[LogEntry]:
        """Return the buffered entries and start a new, empty buffer."""

        batch, self._entries = self._entries, []
        return batch

    def add(self, entry: LogEntry) -> asyncio.Task[FlushOutcome] | None:
        """Buffer a finished entry; returns the flush task when the threshold is reached."""

        self._entries.append(entry)
        self.metrics.observe_log_entry()
        if len(self._entries) < self.kv_batch_size:
            return None

        batch = self.take()
        task = asyncio.get_running_loop().create_task(self.flush(batch))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def flush(self, batch: list[LogEntry]) -> FlushOutcome:
        # Serialise read-modify-write cycles on the stored batch.
        async with self._flush_lock:
            return await store_batched_logs(
                self.file_name,
                batch,
                storage=self.storage,
                inserter=self.inserter,
                db_batch_size=self.db_batch_size,
                metrics=self.metrics,
            )

    async def wait_idle(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def close(self) -> None:
        """Wait for scheduled flushes, then persist whatever is still buffered."""

        await self.wait_idle()
        remaining = self.take()
        if remaining:
            logger.info("batcher.close_flush", extra={"count": len(remaining)})
            await self.flush(remaining)


def build_batcher(settings: Settings, metrics: InMemoryMetrics | None = None) -> LogBatcher:
    return LogBatcher(
        build_storage(settings),
        build_bulk_inserter(settings),
        file_name=settings.log_file_name,
        kv_batch_size=settings.kv_batch_size,
        db_batch_size=settings.log_db_batch_size,
        metrics=metrics,
    )
