from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Sequence

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class LogEntry(BaseModel):
    """One captured HTTP request.

    Field aliases are the persisted JSON keys; both names are accepted on load.
    """

    model_config = ConfigDict(populate_by_name=True)

    timestamp: str
    method: str
    path: str
    params: dict[str, Any] = Field(default_factory=dict)
    sessions: dict[str, Any] = Field(default_factory=dict)
    url: str
    client_ip: str | None = Field(default=None, alias="clientIP")
    user_agent: str | None = Field(default=None, alias="userAgent")
    referer: str | None = None
    origin: str | None = None
    error: str | None = None
    stack_trace: str | None = Field(default=None, alias="stackTrace")
    response_time: int | None = Field(default=None, alias="responseTime")
    status_code: int = Field(default=200, alias="statusCode")
    start_time: int = Field(alias="startTime")

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


@dataclass(frozen=True)
class InsertResult:
    ok: bool
    count: int = 0
    error: str | None = None


_ENTRIES = TypeAdapter(list[LogEntry])


def serialize_entries(entries: Sequence[LogEntry]) -> str:
    return json.dumps([entry.to_json_dict() for entry in entries], indent=2, ensure_ascii=False)


def parse_entries(value: Any) -> list[LogEntry]:
    """Load a stored batch (decoded JSON list or raw JSON string)."""

    if value is None:
        return []
    if isinstance(value, (str, bytes)):
        return _ENTRIES.validate_json(value)
    return _ENTRIES.validate_python(value)
