"""Embeddings and similarity for semantic memory.

Similarity search is a linear scan over stored facts; this module only
provides the vector math and the embedding provider interface.
"""

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import numpy as np

from strata.core.errors import SerializationError, ValidationError

T = TypeVar("T")


@dataclass
class Embedding:
    """Dense float vector plus the model that produced it."""

    vector: list[float]
    model: str
    dimensions: int = field(default=-1)

    def __post_init__(self) -> None:
        self.vector = [float(x) for x in self.vector]
        if self.dimensions < 0:
            self.dimensions = len(self.vector)

    def cosine_similarity(self, other: "Embedding") -> float:
        return cosine_similarity(self, other)

    def euclidean_distance(self, other: "Embedding") -> float:
        return euclidean_distance(self, other)

    def to_dict(self) -> dict[str, Any]:
        return {"vector": self.vector, "dimensions": self.dimensions, "model": self.model}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Embedding":
        try:
            return cls(
                vector=list(data["vector"]),
                model=data["model"],
                dimensions=int(data.get("dimensions", len(data["vector"]))),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError("deserialize_embedding", str(e)) from e


def _pair(a: Any, b: Any) -> tuple[np.ndarray, np.ndarray]:
    """Convert both operands to arrays, rejecting mismatched dimensions."""
    dims_a = a.dimensions if isinstance(a, Embedding) else len(a)
    dims_b = b.dimensions if isinstance(b, Embedding) else len(b)
    if dims_a != dims_b:
        raise ValidationError("embedding_dimensions", "dimensions must match", f"{dims_a} vs {dims_b}")

    vec_a = a.vector if isinstance(a, Embedding) else a
    vec_b = b.vector if isinstance(b, Embedding) else b
    return np.asarray(vec_a, dtype=np.float64), np.asarray(vec_b, dtype=np.float64)


def cosine_similarity(a: Any, b: Any) -> float:
    """Cosine similarity of two embeddings or plain vectors.

    A zero-norm operand yields 0.0 rather than an error.
    """
    vec_a, vec_b = _pair(a, b)

    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(vec_a, vec_b) / (norm_a * norm_b))


def euclidean_distance(a: Any, b: Any) -> float:
    vec_a, vec_b = _pair(a, b)
    return float(np.linalg.norm(vec_a - vec_b))


@dataclass
class SearchResult(Generic[T]):
    """Item with its similarity score (higher is closer)."""

    item: T
    score: float
    distance: float | None = None


class EmbeddingProvider(ABC):
    """Turns text into embeddings."""

    @abstractmethod
    async def embed(self, text: str) -> Embedding:
        """Generate an embedding for text."""
        ...

    @property
    @abstractmethod
    def model_name(self) -> str: ...

    @property
    @abstractmethod
    def dimensions(self) -> int: ...


class HashEmbeddingProvider(EmbeddingProvider):
    """Deterministic hash-derived vectors for offline use and tests.

    Identical text always maps to the identical vector; there is no notion
    of meaning, so similarity between different texts is noise.
    """

    def __init__(self, dimensions: int = 128):
        if dimensions <= 0:
            raise ValidationError("dimensions", "must be positive", dimensions)
        self._dimensions = dimensions

    @property
    def model_name(self) -> str:
        return "hash-embedding"

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def embed(self, text: str) -> Embedding:
        return Embedding(vector=self._hash_embed(text), model="hash")

    def _hash_embed(self, text: str) -> list[float]:
        seed = int.from_bytes(hashlib.blake2b(text.encode("utf-8"), digest_size=8).digest(), "big")
        rng = np.random.default_rng(seed)
        return rng.uniform(-1.0, 1.0, self._dimensions).tolist()
