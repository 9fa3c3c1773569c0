"""
Storage interface.

Async namespaced key-value contract the whole memory subsystem is built on.
Backends are shared by reference between every store; none of the
operations below is atomic across multiple keys.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from strata.memory.keys import in_namespace
from strata.memory.value import MemoryValue


@dataclass
class MemoryQuery:
    """Key listing filter."""

    namespace: str | None = None
    prefix: str | None = None
    limit: int | None = None

    def matches(self, key: str) -> bool:
        if self.namespace is not None and not in_namespace(key, self.namespace):
            return False
        if self.prefix is not None and not key.startswith(self.prefix):
            return False
        return True

    def apply(self, keys: Iterable[str]) -> list[str]:
        """Filter, sort and truncate a key collection."""
        selected = sorted(k for k in keys if self.matches(k))
        if self.limit is not None:
            selected = selected[: self.limit]
        return selected


class Storage(ABC):
    """Abstract key-value storage backend.

    Every operation may raise StorageError.
    """

    @abstractmethod
    async def get(self, key: str) -> MemoryValue | None:
        """Get value by key."""
        ...

    @abstractmethod
    async def set(self, key: str, value: MemoryValue) -> None:
        """Insert or replace a value."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key, return True if it existed."""
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check whether key is present."""
        ...

    @abstractmethod
    async def keys(self, query: MemoryQuery | None = None) -> list[str]:
        """List keys matching query, sorted ascending."""
        ...

    @abstractmethod
    async def count(self, namespace: str | None = None) -> int:
        """Count keys in namespace (all keys if None)."""
        ...

    @abstractmethod
    async def clear(self, namespace: str | None = None) -> None:
        """Remove every key in namespace (everything if None)."""
        ...

    # Batched variants - sequential by default, backends may override

    async def mget(self, keys: Sequence[str]) -> list[MemoryValue | None]:
        """Get several values, preserving order."""
        return [await self.get(key) for key in keys]

    async def mset(self, pairs: Sequence[tuple[str, MemoryValue]]) -> None:
        """Set several values."""
        for key, value in pairs:
            await self.set(key, value)

    async def mdelete(self, keys: Sequence[str]) -> int:
        """Delete several keys, return how many existed."""
        deleted = 0
        for key in keys:
            if await self.delete(key):
                deleted += 1
        return deleted

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
        return None
