from __future__ import annotations

from reqlog.config import Settings
from reqlog.storage.base import KVStore
from reqlog.storage.filesystem import FileSystemStorage
from reqlog.storage.memory import MemoryStorage

__all__ = ["FileSystemStorage", "KVStore", "MemoryStorage", "build_storage"]


def build_storage(settings: Settings) -> KVStore:
    if settings.log_storage_driver == "memory":
        return MemoryStorage()
    return FileSystemStorage(settings.storage_path)
