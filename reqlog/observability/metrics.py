from __future__ import annotations

from dataclasses import asdict, dataclass
from threading import Lock
from typing import Any


@dataclass
class _LatencyAgg:
    count: int = 0
    sum_ms: float = 0.0
    max_ms: float = 0.0

    def observe(self, elapsed_ms: float) -> None:
        self.count += 1
        self.sum_ms += float(elapsed_ms)
        if elapsed_ms > self.max_ms:
            self.max_ms = float(elapsed_ms)


_COUNTERS = (
    "http_requests_total",
    "log_entries_total",
    "flushes_total",
    "flush_failures_total",
    "kv_writes_total",
    "kv_write_failures_total",
    "kv_corrupt_batches_total",
    "db_batches_total",
    "db_entries_total",
    "db_insert_failures_total",
)


class InMemoryMetrics:
    """Thread-safe, process-local metrics (resets on restart).

    Flush failures never reach the request path, so these counters are how
    they become visible.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: dict[str, int] = dict.fromkeys(_COUNTERS, 0)
        self.http_request_ms = _LatencyAgg()
        self.flush_ms = _LatencyAgg()

    def _inc(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] += amount

    def counter(self, name: str) -> int:
        with self._lock:
            return self._counters[name]

    def observe_http_request(self, elapsed_ms: float) -> None:
        with self._lock:
            self._counters["http_requests_total"] += 1
            self.http_request_ms.observe(elapsed_ms)

    def observe_log_entry(self) -> None:
        self._inc("log_entries_total")

    def observe_flush(self, elapsed_ms: float, ok: bool) -> None:
        with self._lock:
            self._counters["flushes_total"] += 1
            if not ok:
                self._counters["flush_failures_total"] += 1
            self.flush_ms.observe(elapsed_ms)

    def observe_kv_write(self, ok: bool) -> None:
        self._inc("kv_writes_total" if ok else "kv_write_failures_total")

    def observe_corrupt_batch(self) -> None:
        self._inc("kv_corrupt_batches_total")

    def observe_db_insert(self, count: int, ok: bool) -> None:
        with self._lock:
            if ok:
                self._counters["db_batches_total"] += 1
                self._counters["db_entries_total"] += count
            else:
                self._counters["db_insert_failures_total"] += 1

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "latency_ms": {
                    "http_request_ms": asdict(self.http_request_ms),
                    "flush_ms": asdict(self.flush_ms),
                },
            }

    def reset(self) -> None:
        with self._lock:
            self._counters = dict.fromkeys(_COUNTERS, 0)
            self.http_request_ms = _LatencyAgg()
            self.flush_ms = _LatencyAgg()


_METRICS: InMemoryMetrics | None = None


def get_metrics() -> InMemoryMetrics:
    global _METRICS
    if _METRICS is None:
        _METRICS = InMemoryMetrics()
    return _METRICS


def reset_metrics() -> None:
    """Reset metrics counters/aggregates (used by tests)."""

    get_metrics().reset()
