"""In-memory implementation of Storage."""

import copy

from strata.memory.keys import in_namespace
from strata.memory.value import MemoryValue, ValueKind
from strata.storage.base import MemoryQuery, Storage


def _detach(value: MemoryValue) -> MemoryValue:
    """Copy mutable JSON payloads so callers never alias stored documents."""
    if value.kind == ValueKind.JSON:
        return MemoryValue.json(copy.deepcopy(value.data))
    return value


class InMemoryStorage(Storage):
    """Dict-backed storage for tests, development and single-process agents.

    Uses linear scans for namespace queries. Contents are lost when the
    process exits.
    """

    def __init__(self) -> None:
        self._data: dict[str, MemoryValue] = {}

    async def get(self, key: str) -> MemoryValue | None:
        value = self._data.get(key)
        return _detach(value) if value is not None else None

    async def set(self, key: str, value: MemoryValue) -> None:
        self._data[key] = _detach(value)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return key in self._data

    async def keys(self, query: MemoryQuery | None = None) -> list[str]:
        return (query or MemoryQuery()).apply(self._data.keys())

    async def count(self, namespace: str | None = None) -> int:
        if namespace is None:
            return len(self._data)
        return sum(1 for key in self._data if in_namespace(key, namespace))

    async def clear(self, namespace: str | None = None) -> None:
        if namespace is None:
            self._data.clear()
            return
        for key in [k for k in self._data if in_namespace(k, namespace)]:
            del self._data[key]

    def __len__(self) -> int:
        return len(self._data)
