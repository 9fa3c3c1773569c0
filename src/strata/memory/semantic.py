"""Semantic memory - subject/predicate/object facts with optional embeddings.

Lookups are full scans of agent::<agent_id>::semantic; there is no index.
Several facts may share the same subject and predicate.
"""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

from strata.core.errors import SerializationError, ValidationError
from strata.core.logging import get_logger
from strata.core.types import parse_timestamp, utc_now
from strata.core.typing import JSONDict
from strata.memory.keys import agent_namespace, child_key
from strata.memory.value import MemoryValue
from strata.memory.vector import Embedding, EmbeddingProvider, SearchResult, cosine_similarity
from strata.storage.base import MemoryQuery, Storage

logger = get_logger("memory.semantic")


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


@dataclass
class Fact:
    """A subject-predicate-object assertion."""

    subject: str
    predicate: str
    object: MemoryValue
    confidence: float = 1.0
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    metadata: dict[str, str] = field(default_factory=dict)
    embedding: Embedding | None = None

    def __post_init__(self) -> None:
        self.object = MemoryValue.of(self.object)
        self.confidence = _clamp(self.confidence)

    @property
    def text(self) -> str:
        """Text used to embed this fact."""
        obj = self.object.as_string() or ""
        return f"{self.subject} {self.predicate} {obj}"

    def to_dict(self) -> JSONDict:
        data = {
            "id": self.id,
            "subject": self.subject,
            "predicate": self.predicate,
            "object": self.object.to_dict(),
            "confidence": self.confidence,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "metadata": self.metadata,
        }
        if self.embedding is not None:
            data["embedding"] = self.embedding.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: JSONDict) -> "Fact":
        try:
            embedding = data.get("embedding")
            return cls(
                id=data["id"],
                subject=data["subject"],
                predicate=data["predicate"],
                object=MemoryValue.from_dict(data["object"]),
                confidence=data.get("confidence", 1.0),
                created_at=parse_timestamp(data["created_at"]),
                updated_at=parse_timestamp(data["updated_at"]),
                metadata=dict(data.get("metadata") or {}),
                embedding=Embedding.from_dict(embedding) if embedding else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError("deserialize_fact", str(e)) from e


class SemanticMemory:
    """Fact store for one agent.

    embedding_provider is the default for the embedding operations; a
    provider passed per call takes precedence.
    """

    def __init__(
        self,
        storage: Storage,
        agent_id: str,
        embedding_provider: EmbeddingProvider | None = None,
    ):
        self.storage = storage
        self.agent_id = agent_id
        self.namespace = agent_namespace(agent_id, "semantic")
        self.embedding_provider = embedding_provider

    async def store_fact(self, fact: Fact) -> None:
        await self.storage.set(self._fact_key(fact.id), MemoryValue.json(fact.to_dict()))
        logger.debug(f"Stored fact {fact.id}: {fact.subject} {fact.predicate}")

    async def get_fact(self, fact_id: str) -> Fact | None:
        value = await self.storage.get(self._fact_key(fact_id))
        if value is None:
            return None
        return self._decode(value)

    async def delete_fact(self, fact_id: str) -> bool:
        return await self.storage.delete(self._fact_key(fact_id))

    async def find_by_subject(self, subject: str) -> list[Fact]:
        return [f for f in await self.get_all_facts() if f.subject == subject]

    async def find_by_predicate(self, predicate: str) -> list[Fact]:
        return [f for f in await self.get_all_facts() if f.predicate == predicate]

    async def find_by_subject_and_predicate(self, subject: str, predicate: str) -> list[Fact]:
        return [
            f for f in await self.get_all_facts()
            if f.subject == subject and f.predicate == predicate
        ]

    async def get_all_facts(self) -> list[Fact]:
        keys = await self.storage.keys(MemoryQuery(namespace=self.namespace))
        facts = []
        for value in await self.storage.mget(keys):
            if value is not None:
                facts.append(self._decode(value))
        return facts

    async def count(self) -> int:
        return await self.storage.count(self.namespace)

    async def clear(self) -> None:
        await self.storage.clear(self.namespace)

    async def vector_search(
        self,
        query_embedding: Embedding,
        limit: int = 10,
        min_similarity: float = 0.0,
    ) -> list[SearchResult[Fact]]:
        """Rank facts by cosine similarity to query_embedding.

        Facts without an embedding, or with a different dimensionality, are
        skipped.
        """
        results: list[SearchResult[Fact]] = []
        for fact in await self.get_all_facts():
            if fact.embedding is None or fact.embedding.dimensions != query_embedding.dimensions:
                continue
            score = cosine_similarity(query_embedding, fact.embedding)
            if score >= min_similarity:
                results.append(SearchResult(item=fact, score=score))

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    async def store_fact_with_embedding(
        self,
        fact: Fact,
        provider: EmbeddingProvider | None = None,
    ) -> Fact:
        """Embed the fact's text, attach the embedding, and store it."""
        fact.embedding = await self._provider(provider).embed(fact.text)
        await self.store_fact(fact)
        return fact

    async def find_similar(
        self,
        query: str,
        provider: EmbeddingProvider | None = None,
        limit: int = 10,
        min_similarity: float = 0.0,
    ) -> list[SearchResult[Fact]]:
        query_embedding = await self._provider(provider).embed(query)
        return await self.vector_search(query_embedding, limit, min_similarity)

    def _provider(self, provider: EmbeddingProvider | None) -> EmbeddingProvider:
        provider = provider or self.embedding_provider
        if provider is None:
            raise ValidationError("embedding_provider", "no embedding provider configured", None)
        return provider

    def _fact_key(self, fact_id: str) -> str:
        return child_key(self.namespace, "fact", fact_id)

    @staticmethod
    def _decode(value: MemoryValue) -> Fact:
        data = value.as_json()
        if not isinstance(data, dict):
            raise SerializationError("deserialize_fact", f"expected JSON document, got {value.kind.value}")
        return Fact.from_dict(data)
