"""Tests for embeddings and similarity."""

import math

import pytest

from strata.core.errors import ValidationError
from strata.memory.vector import (
    Embedding,
    HashEmbeddingProvider,
    cosine_similarity,
    euclidean_distance,
)


def test_cosine_self_similarity():
    v = Embedding([0.3, -1.2, 4.0], "test")
    assert cosine_similarity(v, v) == pytest.approx(1.0, abs=1e-6)


def test_cosine_orthogonal():
    assert cosine_similarity([1.0, 0.0], [0.0, 5.0]) == pytest.approx(0.0, abs=1e-6)


def test_cosine_opposite():
    assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0, abs=1e-6)


def test_zero_norm_is_zero_similarity():
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


def test_dimension_mismatch():
    a = Embedding([1.0, 2.0, 3.0], "test")
    b = Embedding([1.0, 2.0, 3.0, 4.0], "test")
    with pytest.raises(ValidationError) as exc_info:
        a.cosine_similarity(b)
    assert exc_info.value.field == "embedding_dimensions"
    assert exc_info.value.observed == "3 vs 4"


def test_euclidean_distance():
    assert euclidean_distance([0.0, 0.0], [3.0, 4.0]) == pytest.approx(5.0)


def test_embedding_dimensions_default():
    emb = Embedding([1, 2, 3], "m")
    assert emb.dimensions == 3
    assert emb.vector == [1.0, 2.0, 3.0]
    assert Embedding.from_dict(emb.to_dict()) == emb


@pytest.mark.asyncio
async def test_hash_provider_is_deterministic():
    provider = HashEmbeddingProvider(64)
    first = await provider.embed("rust ownership")
    second = await provider.embed("rust ownership")
    other = await provider.embed("python typing")

    assert first.vector == second.vector
    assert first.dimensions == 64
    assert all(-1.0 <= x <= 1.0 for x in first.vector)
    assert first.vector != other.vector
    assert math.isclose(first.cosine_similarity(second), 1.0, abs_tol=1e-6)


def test_hash_provider_rejects_bad_dimensions():
    with pytest.raises(ValidationError):
        HashEmbeddingProvider(0)
