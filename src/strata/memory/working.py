"""Working memory - temporary scratchpad for agent reasoning.

Session-scoped space for intermediate results during execution. Cleanup is
explicit: call close() (or use the instance as an async context manager)
when the session ends; nothing happens on garbage collection.
"""

from collections.abc import Sequence
from typing import Any

from strata.core.logging import get_logger
from strata.memory.keys import child_key, session_namespace, strip_namespace
from strata.memory.value import MemoryValue
from strata.storage.base import MemoryQuery, Storage

logger = get_logger("memory.working")


class WorkingMemory:
    """Scratchpad under session::<session_id>::working."""

    def __init__(self, storage: Storage, session_id: str, auto_clear: bool = True):
        self.storage = storage
        self.session_id = session_id
        self.namespace = session_namespace(session_id, "working")
        self.auto_clear = auto_clear

    async def __aenter__(self) -> "WorkingMemory":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def set(self, key: str, value: Any) -> None:
        await self.storage.set(self._key(key), MemoryValue.of(value))

    async def get(self, key: str) -> MemoryValue | None:
        return await self.storage.get(self._key(key))

    async def delete(self, key: str) -> bool:
        return await self.storage.delete(self._key(key))

    async def exists(self, key: str) -> bool:
        return await self.storage.exists(self._key(key))

    async def clear(self) -> None:
        await self.storage.clear(self.namespace)

    async def keys(self) -> list[str]:
        """Logical keys currently stored (namespace stripped)."""
        all_keys = await self.storage.keys(MemoryQuery(namespace=self.namespace))
        return strip_namespace(self.namespace, all_keys)

    async def set_many(self, pairs: Sequence[tuple[str, Any]]) -> None:
        await self.storage.mset([(self._key(k), MemoryValue.of(v)) for k, v in pairs])

    async def get_many(self, keys: Sequence[str]) -> list[MemoryValue | None]:
        return await self.storage.mget([self._key(k) for k in keys])

    async def count(self) -> int:
        return await self.storage.count(self.namespace)

    def enable_auto_clear(self) -> None:
        self.auto_clear = True

    def disable_auto_clear(self) -> None:
        self.auto_clear = False

    async def close(self) -> None:
        """Release the scratchpad; clears it when auto_clear is enabled."""
        if self.auto_clear:
            await self.clear()
            logger.debug(f"Working memory cleared: {self.namespace}")

    def _key(self, key: str) -> str:
        return child_key(self.namespace, key)
