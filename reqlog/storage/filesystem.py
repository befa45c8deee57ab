from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Any

from reqlog.storage.base import decode_value


class FileSystemStorage:
    """One file per key under ``base_dir``."""

    def __init__(self, base_dir: str | Path) -> None:
        self.base_dir = Path(base_dir)

    def _path_for(self, key: str) -> Path:
        if not key or key.startswith(("/", "\\")):
            raise ValueError(f"Invalid storage key: {key!r}")
        base = self.base_dir.resolve()
        path = (base / key).resolve()
        if base not in path.parents:
            raise ValueError(f"Storage key escapes base directory: {key!r}")
        return path

    async def has_item(self, key: str) -> bool:
        path = self._path_for(key)
        return await asyncio.to_thread(path.is_file)

    async def get_item(self, key: str) -> Any | None:
        path = self._path_for(key)

        def _read() -> str | None:
            try:
                return path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None

        return decode_value(await asyncio.to_thread(_read))

    async def set_item(self, key: str, value: str) -> None:
        path = self._path_for(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Readers see either the old file or the new one, never a partial write.
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise

        await asyncio.to_thread(_write)

    async def remove_item(self, key: str) -> None:
        path = self._path_for(key)
        await asyncio.to_thread(path.unlink, True)
