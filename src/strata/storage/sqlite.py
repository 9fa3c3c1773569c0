"""SQLite key-value storage backed by aiosqlite."""

import json
import sqlite3
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from strata.core.errors import SerializationError, StorageError
from strata.core.logging import get_logger
from strata.memory.keys import SEPARATOR
from strata.memory.value import MemoryValue
from strata.storage.base import MemoryQuery, Storage

logger = get_logger("storage.sqlite")


# Python 3.12+ fix: register the datetime adapter explicitly
def _adapt_datetime(dt: datetime) -> str:
    """Convert datetime to ISO format string for SQLite storage."""
    return dt.isoformat()


sqlite3.register_adapter(datetime, _adapt_datetime)

SCHEMA = """
-- Flat key-value table; namespaces are key prefixes interpreted by the memory layer
CREATE TABLE IF NOT EXISTS memory_kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,  -- MemoryValue wire format (JSON)
    updated_at DATETIME NOT NULL
);
"""

# key == namespace, or key starts with "<namespace>::" (case-sensitive, no LIKE wildcards)
NAMESPACE_FILTER = "key = ? OR substr(key, 1, ?) = ?"


def _encode(value: MemoryValue) -> str:
    try:
        return json.dumps(value.to_dict())
    except (TypeError, ValueError) as e:
        raise SerializationError("serialize_value", str(e)) from e


def _decode(raw: str) -> MemoryValue:
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise SerializationError("deserialize_value", str(e)) from e
    return MemoryValue.from_dict(data)


def _namespace_params(namespace: str) -> tuple[str, int, str]:
    prefix = namespace + SEPARATOR
    return (namespace, len(prefix), prefix)


class SQLiteStorage(Storage):
    """SQLite-backed storage; survives process restarts."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Initialize database connection and schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._conn = await aiosqlite.connect(self.db_path)
            await self._conn.executescript(SCHEMA)
            await self._conn.commit()
        except aiosqlite.Error as e:
            raise StorageError("connect", e) from e
        logger.info(f"Connected to memory storage: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def __aenter__(self) -> "SQLiteStorage":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Storage not connected. Call connect() first.")
        return self._conn

    async def get(self, key: str) -> MemoryValue | None:
        try:
            async with self.conn.execute(
                "SELECT value FROM memory_kv WHERE key = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError("get", e) from e
        return _decode(row[0]) if row else None

    async def set(self, key: str, value: MemoryValue) -> None:
        encoded = _encode(value)
        now = datetime.now(timezone.utc)
        try:
            await self.conn.execute(
                """INSERT INTO memory_kv (key, value, updated_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at""",
                (key, encoded, now),
            )
            await self.conn.commit()
        except aiosqlite.Error as e:
            raise StorageError("set", e) from e

    async def delete(self, key: str) -> bool:
        try:
            cursor = await self.conn.execute("DELETE FROM memory_kv WHERE key = ?", (key,))
            await self.conn.commit()
        except aiosqlite.Error as e:
            raise StorageError("delete", e) from e
        return cursor.rowcount > 0

    async def exists(self, key: str) -> bool:
        try:
            async with self.conn.execute(
                "SELECT 1 FROM memory_kv WHERE key = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError("exists", e) from e
        return row is not None

    async def keys(self, query: MemoryQuery | None = None) -> list[str]:
        query = query or MemoryQuery()
        sql = "SELECT key FROM memory_kv"
        params: tuple = ()
        if query.namespace is not None:
            sql += f" WHERE {NAMESPACE_FILTER}"
            params = _namespace_params(query.namespace)
        sql += " ORDER BY key"

        try:
            async with self.conn.execute(sql, params) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageError("keys", e) from e
        return query.apply(row[0] for row in rows)

    async def count(self, namespace: str | None = None) -> int:
        sql = "SELECT COUNT(*) FROM memory_kv"
        params: tuple = ()
        if namespace is not None:
            sql += f" WHERE {NAMESPACE_FILTER}"
            params = _namespace_params(namespace)

        try:
            async with self.conn.execute(sql, params) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError("count", e) from e
        return row[0] if row else 0

    async def clear(self, namespace: str | None = None) -> None:
        try:
            if namespace is None:
                await self.conn.execute("DELETE FROM memory_kv")
            else:
                await self.conn.execute(
                    f"DELETE FROM memory_kv WHERE {NAMESPACE_FILTER}",
                    _namespace_params(namespace),
                )
            await self.conn.commit()
        except aiosqlite.Error as e:
            raise StorageError("clear", e) from e
        logger.debug(f"Cleared namespace: {namespace or '<all>'}")

    async def mset(self, pairs: Sequence[tuple[str, MemoryValue]]) -> None:
        now = datetime.now(timezone.utc)
        rows = [(key, _encode(value), now) for key, value in pairs]
        try:
            await self.conn.executemany(
                """INSERT INTO memory_kv (key, value, updated_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at""",
                rows,
            )
            await self.conn.commit()
        except aiosqlite.Error as e:
            raise StorageError("mset", e) from e

    async def mdelete(self, keys: Sequence[str]) -> int:
        deleted = 0
        try:
            for key in keys:
                cursor = await self.conn.execute("DELETE FROM memory_kv WHERE key = ?", (key,))
                deleted += max(cursor.rowcount, 0)
            await self.conn.commit()
        except aiosqlite.Error as e:
            raise StorageError("mdelete", e) from e
        return deleted
