from __future__ import annotations

from time import perf_counter
from typing import Any, Callable

import structlog

from reqlog.services.batcher import LogBatcher
from reqlog.services.capture import complete_log_entry, create_log_entry, record_error, refresh_from_scope


class RequestLogMiddleware:
    """Captures one LogEntry per HTTP request and hands it to the batcher on completion."""

    def __init__(self, app: Callable[..., Any], batcher: LogBatcher) -> None:
        self.app = app
        self.batcher = batcher
        # Avoid self-observing the observability endpoints.
        self._excluded_metric_paths = {"/api/metrics", "/metrics"}

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        log = structlog.get_logger("request_log")
        entry = create_log_entry(scope)
        log.info("request_log.created", url=entry.url, method=entry.method)

        start = perf_counter()
        response_started = False

        async def receive_wrapper() -> dict[str, Any]:
            try:
                return await receive()
            except Exception as exc:
                record_error(entry, exc)
                raise

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal response_started

            if message.get("type") == "http.response.start":
                response_started = True
                entry.status_code = int(message.get("status", 500))

            await send(message)

        try:
            await self.app(scope, receive_wrapper, send_wrapper)
        except Exception as exc:
            record_error(entry, exc)
            if not response_started:
                entry.status_code = 500
            raise
        finally:
            refresh_from_scope(entry, scope)
            response_time = complete_log_entry(entry)

            if entry.path not in self._excluded_metric_paths:
                self.batcher.metrics.observe_http_request(elapsed_ms=(perf_counter() - start) * 1000.0)

            log.info(
                "request_log.finished",
                url=entry.url,
                status_code=entry.status_code,
                response_time_ms=response_time,
                error=entry.error,
            )
            self.batcher.add(entry)
