from __future__ import annotations

import json
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class KVStore(Protocol):
    async def has_item(self, key: str) -> bool: ...

    async def get_item(self, key: str) -> Any | None: ...

    async def set_item(self, key: str, value: str) -> None: ...

    async def remove_item(self, key: str) -> None: ...


def decode_value(raw: str | None) -> Any | None:
    """Return the decoded JSON value for *raw*, or *raw* itself if it isn't JSON."""

    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw
