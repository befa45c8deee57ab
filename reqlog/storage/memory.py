from __future__ import annotations

from typing import Any

from reqlog.storage.base import decode_value


class MemoryStorage:
    """Process-local KV store (resets on restart)."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    async def has_item(self, key: str) -> bool:
        return key in self._items

    async def get_item(self, key: str) -> Any | None:
        return decode_value(self._items.get(key))

    async def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    async def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._items)
