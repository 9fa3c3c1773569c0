"""Shared knowledge base - global entries visible across agents.

Entries live under global::knowledge::<key>. An entry without an ACL is
public; one with an ACL is visible to its creator and the listed agents.
Only the creator may delete an entry.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from strata.core.errors import SerializationError
from strata.core.logging import get_logger
from strata.core.types import parse_timestamp, utc_now
from strata.core.typing import JSONDict
from strata.memory.keys import child_key, global_namespace, strip_namespace
from strata.memory.value import MemoryValue
from strata.storage.base import MemoryQuery, Storage

logger = get_logger("memory.shared")

KNOWLEDGE_NAMESPACE = global_namespace("knowledge")


@dataclass
class KnowledgeEntry:
    """A keyed value shared between agents."""

    key: str
    value: MemoryValue
    created_by: str
    tags: list[str] = field(default_factory=list)
    acl: list[str] | None = None
    metadata: dict[str, str] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utc_now)
    updated_by: str = ""
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        self.value = MemoryValue.of(self.value)
        if not self.updated_by:
            self.updated_by = self.created_by
        if self.updated_at is None:
            self.updated_at = self.created_at

    def has_access(self, agent_id: str) -> bool:
        if self.acl is None:
            return True
        return agent_id == self.created_by or agent_id in self.acl

    def to_dict(self) -> JSONDict:
        return {
            "id": self.id,
            "key": self.key,
            "value": self.value.to_dict(),
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(),
            "updated_by": self.updated_by,
            "updated_at": self.updated_at.isoformat(),
            "tags": self.tags,
            "acl": self.acl,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: JSONDict) -> "KnowledgeEntry":
        try:
            acl = data.get("acl")
            return cls(
                id=data["id"],
                key=data["key"],
                value=MemoryValue.from_dict(data["value"]),
                created_by=data["created_by"],
                created_at=parse_timestamp(data["created_at"]),
                updated_by=data["updated_by"],
                updated_at=parse_timestamp(data["updated_at"]),
                tags=list(data.get("tags") or []),
                acl=list(acl) if acl is not None else None,
                metadata=dict(data.get("metadata") or {}),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError("deserialize_entry", str(e)) from e


class SharedKnowledgeBase:
    """Cross-agent knowledge, seen through one agent's identity."""

    def __init__(self, storage: Storage, agent_id: str):
        self.storage = storage
        self.agent_id = agent_id
        self.namespace = KNOWLEDGE_NAMESPACE

    async def store(
        self,
        key: str,
        value: Any,
        tags: Sequence[str] | None = None,
        acl: Sequence[str] | None = None,
    ) -> KnowledgeEntry:
        """Create an entry owned by this agent and store it."""
        entry = KnowledgeEntry(
            key=key,
            value=MemoryValue.of(value),
            created_by=self.agent_id,
            tags=list(tags or []),
            acl=list(acl) if acl is not None else None,
        )
        await self.store_entry(entry)
        return entry

    async def store_with_tags(self, key: str, value: Any, tags: Sequence[str]) -> KnowledgeEntry:
        return await self.store(key, value, tags=tags)

    async def store_entry(self, entry: KnowledgeEntry) -> None:
        """Persist entry, stamping this agent as the latest updater."""
        entry.updated_by = self.agent_id
        entry.updated_at = utc_now()
        await self.storage.set(self._entry_key(entry.key), MemoryValue.json(entry.to_dict()))
        logger.debug(f"Agent {self.agent_id} stored knowledge '{entry.key}'")

    async def get(self, key: str) -> KnowledgeEntry | None:
        """Entry for key, or None when missing or not visible to this agent."""
        entry = await self._load(key)
        if entry is None or not entry.has_access(self.agent_id):
            return None
        return entry

    async def get_value(self, key: str) -> MemoryValue | None:
        entry = await self.get(key)
        return entry.value if entry is not None else None

    async def delete(self, key: str) -> bool:
        """Delete an entry this agent created.

        Returns False without raising when another agent owns the entry.
        """
        entry = await self._load(key)
        if entry is not None and entry.created_by != self.agent_id:
            logger.debug(f"Agent {self.agent_id} may not delete '{key}' (owner {entry.created_by})")
            return False
        return await self.storage.delete(self._entry_key(key))

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def find_by_tag(self, tag: str) -> list[KnowledgeEntry]:
        return [e for e in await self.get_all_entries() if tag in e.tags]

    async def find_by_creator(self, creator_agent_id: str) -> list[KnowledgeEntry]:
        return [e for e in await self.get_all_entries() if e.created_by == creator_agent_id]

    async def get_all_entries(self) -> list[KnowledgeEntry]:
        """Every entry visible to this agent."""
        keys = await self.storage.keys(MemoryQuery(namespace=self.namespace))
        entries = []
        for key in strip_namespace(self.namespace, keys):
            entry = await self.get(key)
            if entry is not None:
                entries.append(entry)
        return entries

    async def count(self) -> int:
        """Raw entry count, including entries hidden from this agent."""
        return await self.storage.count(self.namespace)

    async def clear(self) -> None:
        await self.storage.clear(self.namespace)

    async def _load(self, key: str) -> KnowledgeEntry | None:
        value = await self.storage.get(self._entry_key(key))
        if value is None:
            return None
        data = value.as_json()
        if not isinstance(data, dict):
            raise SerializationError("deserialize_entry", f"expected JSON document, got {value.kind.value}")
        return KnowledgeEntry.from_dict(data)

    def _entry_key(self, key: str) -> str:
        return child_key(self.namespace, key)
