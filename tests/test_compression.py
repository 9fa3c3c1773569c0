"""Tests for the memory compressor."""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from strata.core.errors import ExternalServiceError, ValidationError
from strata.core.types import utc_now
from strata.llm.base import LLMProvider, LLMResponse, TaskType
from strata.memory.compression import (
    CompressionConfig,
    CompressionStrategy,
    MemoryCompressor,
    MemoryStats,
    estimate_size,
)
from strata.memory.value import MemoryValue
from strata.storage.inmemory import InMemoryStorage

NS = "session::s1::conversation"


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def compressor(storage):
    return MemoryCompressor(storage)


async def add_message(storage, index: int, minutes_ago: int, content: str | None = None) -> None:
    await storage.set(
        f"{NS}::msg_{index}",
        MemoryValue.json({
            "role": "user",
            "content": content or f"message {index}",
            "timestamp": (utc_now() - timedelta(minutes=minutes_ago)).isoformat(),
        }),
    )


def test_config_defaults():
    config = CompressionConfig()
    assert config.max_size_bytes == 10_000_000
    assert config.max_items == 10_000
    assert config.compression_ratio == 0.5
    assert config.use_llm_compression is True
    assert config.min_importance_threshold == 0.7


def test_config_validates_ratios():
    with pytest.raises(ValidationError):
        CompressionConfig(compression_ratio=1.5)
    with pytest.raises(ValidationError):
        CompressionConfig(min_importance_threshold=-0.1)


def test_needs_compression():
    compressor = MemoryCompressor(InMemoryStorage(), CompressionConfig(max_size_bytes=100, max_items=5))
    assert not compressor.needs_compression(MemoryStats(total_bytes=100, item_count=5, avg_item_size=20))
    assert compressor.needs_compression(MemoryStats(total_bytes=101, item_count=1, avg_item_size=101))
    assert compressor.needs_compression(MemoryStats(total_bytes=10, item_count=6, avg_item_size=1))


def test_estimate_size():
    assert estimate_size(MemoryValue.string("héllo")) == 6
    assert estimate_size(MemoryValue.integer(1)) == 8
    assert estimate_size(MemoryValue.float_(1.0)) == 8
    assert estimate_size(MemoryValue.boolean(True)) == 1
    assert estimate_size(MemoryValue.json({"a": 1})) == len('{"a":1}')
    assert estimate_size(MemoryValue.bytes_(b"abc")) == 3
    assert estimate_size(MemoryValue.list_([1, 2])) == 32
    assert estimate_size(MemoryValue.map_({"a": 1})) == 32


@pytest.mark.asyncio
async def test_calculate_stats(storage, compressor):
    await add_message(storage, 0, 30)
    await add_message(storage, 1, 10)
    await storage.set(f"{NS}::count", MemoryValue.integer(2))

    stats = await compressor.calculate_stats(NS)
    assert stats.item_count == 3
    assert stats.total_bytes > 8
    assert stats.avg_item_size == stats.total_bytes // 3
    assert stats.oldest_timestamp < stats.newest_timestamp


@pytest.mark.asyncio
async def test_calculate_stats_empty(compressor):
    stats = await compressor.calculate_stats("empty")
    assert stats == MemoryStats(total_bytes=0, item_count=0, avg_item_size=0)


@pytest.mark.asyncio
async def test_remove_old_items(storage, compressor):
    """Only items strictly older than the cutoff are removed."""
    cutoff = utc_now() - timedelta(days=5)
    await storage.set("ns::old", MemoryValue.json({"timestamp": (cutoff - timedelta(days=1)).isoformat()}))
    await storage.set("ns::exact", MemoryValue.json({"timestamp": cutoff.isoformat()}))
    await storage.set("ns::created", MemoryValue.json({"created_at": (cutoff - timedelta(hours=1)).isoformat()}))
    await storage.set("ns::recent", MemoryValue.json({"timestamp": utc_now().isoformat()}))
    await storage.set("ns::undated", MemoryValue.json({"content": "no time"}))
    await storage.set("ns::garbled", MemoryValue.json({"timestamp": "yesterday"}))
    await storage.set("ns::scalar", MemoryValue.string("plain"))

    deleted = await compressor.remove_old_items("ns", cutoff)

    assert deleted == 2
    assert await storage.keys() == ["ns::exact", "ns::garbled", "ns::recent", "ns::scalar", "ns::undated"]


@pytest.mark.asyncio
async def test_remove_old_items_naive_cutoff(storage, compressor):
    """A naive cutoff is read as UTC."""
    await storage.set("ns::old", MemoryValue.json({"timestamp": "2020-06-01T00:00:00+00:00"}))
    await storage.set("ns::new", MemoryValue.json({"timestamp": utc_now().isoformat()}))

    assert await compressor.remove_old_items("ns", datetime(2021, 1, 1)) == 1
    assert await storage.keys() == ["ns::new"]


@pytest.mark.asyncio
async def test_remove_least_important(storage, compressor):
    for name, importance in [("a", 0.1), ("b", 0.2), ("c", 0.3), ("d", 0.9)]:
        await storage.set(f"ns::{name}", MemoryValue.json({"importance": importance}))
    await storage.set("ns::plain", MemoryValue.json({"content": "x"}))

    # Inspects the two least important; both are under the threshold
    assert await compressor.remove_least_important("ns", 0.5, 2) == 2
    assert await storage.keys() == ["ns::c", "ns::d", "ns::plain"]

    # Inspects c and d; only c is under the threshold
    assert await compressor.remove_least_important("ns", 0.5, 5) == 1
    assert await storage.keys() == ["ns::d", "ns::plain"]


@pytest.mark.asyncio
async def test_remove_oldest(storage, compressor):
    for index, minutes in enumerate([5, 50, 20]):
        await add_message(storage, index, minutes)

    assert await compressor.remove_oldest(NS, 2) == 2
    assert await storage.keys() == [f"{NS}::msg_0"]


@pytest.mark.asyncio
async def test_compress_conversation_with_llm(storage):
    llm = AsyncMock(spec=LLMProvider)
    llm.complete.return_value = LLMResponse(content=" Early chatter. ", model="mock")
    compressor = MemoryCompressor(storage, llm=llm)
    for index, minutes in enumerate([40, 30, 20, 10]):
        await add_message(storage, index, minutes)

    deleted = await compressor.compress_conversation_memory(NS, keep_recent_count=1)

    assert deleted == 3
    summary = (await storage.get(f"{NS}::summary::compressed")).as_json()
    assert summary["summary"] == "Early chatter."
    assert summary["compressed_count"] == 3
    assert "compressed_at" in summary
    assert await storage.exists(f"{NS}::msg_3")

    prompt = llm.complete.await_args.args[0][0]["content"]
    assert prompt == (
        "Summarize these conversation messages in 2-3 sentences:\n\n"
        "user: message 0\nuser: message 1\nuser: message 2\n"
    )
    assert llm.complete.await_args.kwargs["task"] == TaskType.COMPRESSION


@pytest.mark.asyncio
async def test_compress_conversation_heuristic(storage, compressor):
    """Without an LLM a digest of the compressed messages is stored."""
    compressor.config.use_llm_compression = False
    for index, minutes in enumerate([30, 20, 10]):
        await add_message(storage, index, minutes)

    assert await compressor.compress_conversation_memory(NS, keep_recent_count=2) == 1
    summary = (await storage.get(f"{NS}::summary::compressed")).as_json()
    assert "user: message 0" in summary["summary"]

    # The summary is never itself compressed
    assert await compressor.compress_conversation_memory(NS, keep_recent_count=2) == 0


@pytest.mark.asyncio
async def test_compress_conversation_llm_failure(storage):
    llm = AsyncMock(spec=LLMProvider)
    llm.complete.side_effect = ConnectionError("down")
    compressor = MemoryCompressor(storage, llm=llm)
    for index, minutes in enumerate([30, 20]):
        await add_message(storage, index, minutes)

    with pytest.raises(ExternalServiceError):
        await compressor.compress_conversation_memory(NS, keep_recent_count=1)
    assert await storage.count(NS) == 2


@pytest.mark.asyncio
async def test_compress_noop_under_threshold(storage, compressor):
    await add_message(storage, 0, 1)
    assert await compressor.compress(NS, CompressionStrategy.REMOVE_OLDEST) == 0


@pytest.mark.asyncio
async def test_compress_remove_oldest_to_ratio(storage):
    compressor = MemoryCompressor(storage, CompressionConfig(max_items=3, compression_ratio=0.5))
    for index in range(6):
        await add_message(storage, index, 60 - index)

    assert await compressor.compress(NS, CompressionStrategy.REMOVE_OLDEST) == 3
    assert await storage.keys() == [f"{NS}::msg_3", f"{NS}::msg_4", f"{NS}::msg_5"]


@pytest.mark.asyncio
async def test_compress_least_important_uses_threshold(storage):
    compressor = MemoryCompressor(storage, CompressionConfig(max_items=2, min_importance_threshold=0.7))
    for name, importance in [("a", 0.1), ("b", 0.8), ("c", 0.9), ("d", 0.95)]:
        await storage.set(f"ns::{name}", MemoryValue.json({"importance": importance}))

    assert await compressor.compress("ns", CompressionStrategy.REMOVE_LEAST_IMPORTANT) == 1


@pytest.mark.asyncio
async def test_compress_summarize_and_archive(storage):
    compressor = MemoryCompressor(storage, CompressionConfig(max_items=3, use_llm_compression=False))
    for index in range(4):
        await add_message(storage, index, 60 - index)

    assert await compressor.compress(NS, CompressionStrategy.SUMMARIZE_AND_ARCHIVE) == 2
    assert await storage.exists(f"{NS}::summary::compressed")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "strategy", [CompressionStrategy.MERGE_SIMILAR, CompressionStrategy.BINARY_COMPRESSION]
)
async def test_compress_unsupported_strategies(storage, strategy):
    compressor = MemoryCompressor(storage, CompressionConfig(max_items=0))
    await add_message(storage, 0, 1)
    with pytest.raises(ValidationError):
        await compressor.compress(NS, strategy)

    # Rejected even when nothing would be compressed
    idle = MemoryCompressor(storage)
    with pytest.raises(ValidationError):
        await idle.compress(NS, strategy)
    assert await storage.count(NS) == 1
