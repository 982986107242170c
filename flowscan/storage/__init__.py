"""Storage backends for persisting scan snapshots and sector statistics."""

from __future__ import annotations

from typing import Optional

from flowscan.config.loader import AppSettings, get_settings

from .base import ComboRecord, SignalRecord, SnapshotRecord, Storage, StorageError
from .sqlite import SQLiteStorage


def create_storage(settings: Optional[AppSettings] = None) -> Storage:
    settings = settings or get_settings()
    sqlite_settings = settings.storage.require_sqlite()
    return SQLiteStorage(sqlite_settings.path, sqlite_settings.pragmas)


__all__ = [
    "ComboRecord",
    "SQLiteStorage",
    "SignalRecord",
    "SnapshotRecord",
    "Storage",
    "StorageError",
    "create_storage",
]
