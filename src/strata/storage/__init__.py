"""
Storage module - namespaced key-value backends.

Backends:
- inmemory: dict-backed, process lifetime
- sqlite: aiosqlite-backed, persistent

create_storage() picks one from Settings.
"""

from strata.core.config import Settings
from strata.core.errors import ValidationError
from strata.storage.base import MemoryQuery, Storage
from strata.storage.inmemory import InMemoryStorage
from strata.storage.sqlite import SQLiteStorage


def create_storage(settings: Settings) -> Storage:
    """Build the configured backend.

    SQLite backends are returned unconnected; call connect() before use.
    """
    if settings.storage_backend == "memory":
        return InMemoryStorage()
    if settings.storage_backend == "sqlite":
        return SQLiteStorage(settings.db_path)
    raise ValidationError("storage_backend", "must be 'memory' or 'sqlite'", settings.storage_backend)


__all__ = [
    "MemoryQuery",
    "Storage",
    "InMemoryStorage",
    "SQLiteStorage",
    "create_storage",
]
