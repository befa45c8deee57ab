"""Observability helpers for the request logger.

structlog JSON logging, process-local metrics and the ASGI middleware that
captures one log entry per request.
"""
