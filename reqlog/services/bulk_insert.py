from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from sqlalchemy.orm import Session, sessionmaker

from reqlog.config import Settings
from reqlog.db.models import RequestLog
from reqlog.db.session import create_db_engine, get_sessionmaker
from reqlog.models.schemas import InsertResult, LogEntry

logger = logging.getLogger(__name__)


class BulkInserter(Protocol):
    async def insert(self, entries: Sequence[LogEntry]) -> InsertResult: ...


class LoggingBulkInserter:
    """Placeholder sink: records the intent to persist a batch, stores nothing."""

    async def insert(self, entries: Sequence[LogEntry]) -> InsertResult:
        logger.info("db.insert.placeholder", extra={"count": len(entries)})
        return InsertResult(ok=True, count=len(entries))


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _to_row(entry: LogEntry) -> RequestLog:
    return RequestLog(
        timestamp=_parse_timestamp(entry.timestamp),
        method=entry.method,
        path=entry.path,
        url=entry.url,
        params=entry.params,
        sessions=entry.sessions,
        client_ip=entry.client_ip,
        user_agent=entry.user_agent,
        referer=entry.referer,
        origin=entry.origin,
        error=entry.error,
        stack_trace=entry.stack_trace,
        response_time_ms=entry.response_time,
        status_code=entry.status_code,
        start_time_ms=entry.start_time,
    )


class SqlBulkInserter:
    """Writes a whole batch into ``request_logs`` in one transaction."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def _insert_sync(self, entries: Sequence[LogEntry]) -> int:
        rows = [_to_row(entry) for entry in entries]
        with self._session_factory() as db:
            db.add_all(rows)
            db.commit()
        return len(rows)

    async def insert(self, entries: Sequence[LogEntry]) -> InsertResult:
        if not entries:
            return InsertResult(ok=True, count=0)
        try:
            count = await asyncio.to_thread(self._insert_sync, list(entries))
        except Exception as exc:  # noqa: BLE001 - reported through InsertResult
            logger.exception("db.insert.failed", extra={"count": len(entries)})
            return InsertResult(ok=False, count=0, error=str(exc))
        logger.info("db.insert.complete", extra={"count": count})
        return InsertResult(ok=True, count=count)


def build_bulk_inserter(settings: Settings) -> BulkInserter:
    if settings.log_db_sink == "sql":
        return SqlBulkInserter(get_sessionmaker(create_db_engine(settings.database_url)))
    return LoggingBulkInserter()
