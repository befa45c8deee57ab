from __future__ import annotations

import time
import traceback
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from reqlog.models.schemas import LogEntry


def _now_ms() -> int:
    return int(time.time() * 1000)


def _iso_timestamp() -> str:
    # Same shape as JavaScript's Date.toISOString(): millisecond precision, "Z" suffix.
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _headers(scope: Mapping[str, Any]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for raw_name, raw_value in scope.get("headers") or []:
        name = raw_name.decode("latin-1").lower()
        # First occurrence wins for repeated headers.
        headers.setdefault(name, raw_value.decode("latin-1"))
    return headers


def _raw_url(scope: Mapping[str, Any]) -> str:
    path = scope.get("raw_path")
    url = path.decode("latin-1") if isinstance(path, bytes) else str(scope.get("path", ""))
    url = url.split("?", 1)[0]
    query = scope.get("query_string") or b""
    if query:
        url = f"{url}?{query.decode('latin-1')}"
    return url


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, Mapping):
        return dict(value)
    return {}


def create_log_entry(scope: Mapping[str, Any]) -> LogEntry:
    """Snapshot an HTTP scope into a fresh entry (no error, no response time yet)."""

    headers = _headers(scope)
    client = scope.get("client")
    return LogEntry(
        timestamp=_iso_timestamp(),
        method=str(scope.get("method", "GET")),
        path=str(scope.get("path", "")),
        params=_as_dict(scope.get("path_params")),
        sessions=_as_dict(scope.get("session")),
        url=_raw_url(scope),
        client_ip=client[0] if client else None,
        user_agent=headers.get("user-agent"),
        referer=headers.get("referer"),
        origin=headers.get("origin"),
        error=None,
        stack_trace=None,
        response_time=None,
        status_code=200,
        start_time=_now_ms(),
    )


def refresh_from_scope(entry: LogEntry, scope: Mapping[str, Any]) -> None:
    """Pick up route params / session data set by downstream routing and middleware."""

    params = scope.get("path_params")
    if isinstance(params, Mapping) and params:
        entry.params = dict(params)
    session = scope.get("session")
    if isinstance(session, Mapping) and session:
        entry.sessions = dict(session)


def record_error(entry: LogEntry, exc: BaseException) -> bool:
    """Store the first error seen for a request. Returns False if one was already recorded."""

    if entry.error is not None:
        return False
    entry.error = str(exc) or exc.__class__.__name__
    entry.stack_trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return True


def complete_log_entry(entry: LogEntry, end_ms: int | None = None) -> int:
    end = _now_ms() if end_ms is None else end_ms
    entry.response_time = max(0, end - entry.start_time)
    return entry.response_time
