"""Memory compression - statistics and eviction policies over any namespace.

The compressor knows nothing about typed memory objects. It scans a
namespace, looks inside JSON documents for "timestamp" (or "created_at")
and "importance" fields, and deletes or summarizes what its policy selects.
Size accounting is an approximation meant for trigger thresholds only.

Passes are read-all, compute, delete with no isolation from concurrent
writers, and abort on the first storage failure.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from strata.core.errors import ValidationError
from strata.core.logging import get_logger
from strata.core.types import parse_timestamp, to_utc, utc_now
from strata.llm.base import LLMProvider, TaskType, complete_text
from strata.memory.keys import child_key
from strata.memory.value import MemoryValue, ValueKind
from strata.storage.base import MemoryQuery, Storage

logger = get_logger("memory.compression")

COMPRESS_MESSAGES_PROMPT = "Summarize these conversation messages in 2-3 sentences:\n\n{messages}"

# Per-message cap for the digest written when no LLM is used
DIGEST_LINE_LIMIT = 200
DIGEST_MAX_LINES = 5


class CompressionStrategy(Enum):
    """Eviction strategy for MemoryCompressor.compress.

    MERGE_SIMILAR and BINARY_COMPRESSION are recognised but unsupported;
    compress() rejects them with ValidationError.
    """

    REMOVE_OLDEST = "remove_oldest"
    REMOVE_LEAST_IMPORTANT = "remove_least_important"
    MERGE_SIMILAR = "merge_similar"
    SUMMARIZE_AND_ARCHIVE = "summarize_and_archive"
    BINARY_COMPRESSION = "binary_compression"


SUPPORTED_STRATEGIES = frozenset({
    CompressionStrategy.REMOVE_OLDEST,
    CompressionStrategy.REMOVE_LEAST_IMPORTANT,
    CompressionStrategy.SUMMARIZE_AND_ARCHIVE,
})


@dataclass
class CompressionConfig:
    """Thresholds and behaviour of the compressor."""

    max_size_bytes: int = 10_000_000
    max_items: int = 10_000
    compression_ratio: float = 0.5
    use_llm_compression: bool = True
    min_importance_threshold: float = 0.7

    def __post_init__(self) -> None:
        if not 0.0 <= self.compression_ratio <= 1.0:
            raise ValidationError("compression_ratio", "must be within [0, 1]", self.compression_ratio)
        if not 0.0 <= self.min_importance_threshold <= 1.0:
            raise ValidationError(
                "min_importance_threshold", "must be within [0, 1]", self.min_importance_threshold
            )


@dataclass
class MemoryStats:
    """Point-in-time snapshot of a namespace."""

    total_bytes: int
    item_count: int
    avg_item_size: int
    oldest_timestamp: datetime | None = None
    newest_timestamp: datetime | None = None


def estimate_size(value: MemoryValue) -> int:
    """Rough byte size of a value."""
    kind = value.kind
    if kind == ValueKind.STRING:
        return len(value.data.encode("utf-8"))
    if kind in (ValueKind.INTEGER, ValueKind.FLOAT):
        return 8
    if kind == ValueKind.BOOLEAN:
        return 1
    if kind == ValueKind.JSON:
        return len(json.dumps(value.data, separators=(",", ":")))
    if kind == ValueKind.BYTES:
        return len(value.data)
    if kind == ValueKind.LIST:
        return len(value.data) * 16
    return len(value.data) * 32


def document_timestamp(key: str, value: MemoryValue) -> datetime | None:
    """The "timestamp" (else "created_at") field of a JSON document, if parseable."""
    data = value.as_json()
    if not isinstance(data, dict):
        return None

    raw = data.get("timestamp")
    if not isinstance(raw, str):
        raw = data.get("created_at")
    if not isinstance(raw, str):
        return None

    try:
        return parse_timestamp(raw)
    except ValueError:
        logger.warning(f"Skipping {key}: unparseable timestamp {raw!r}")
        return None


def document_importance(value: MemoryValue) -> float | None:
    data = value.as_json()
    if not isinstance(data, dict):
        return None
    importance = data.get("importance")
    if isinstance(importance, bool) or not isinstance(importance, (int, float)):
        return None
    return float(importance)


def summary_key(namespace: str) -> str:
    return child_key(namespace, "summary", "compressed")


class MemoryCompressor:
    """Stateless policy object parameterized by a CompressionConfig."""

    def __init__(
        self,
        storage: Storage,
        config: CompressionConfig | None = None,
        llm: LLMProvider | None = None,
    ):
        self.storage = storage
        self.config = config or CompressionConfig()
        self.llm = llm

    def needs_compression(self, stats: MemoryStats) -> bool:
        return (
            stats.total_bytes > self.config.max_size_bytes
            or stats.item_count > self.config.max_items
        )

    async def calculate_stats(self, namespace: str) -> MemoryStats:
        total_bytes = 0
        oldest: datetime | None = None
        newest: datetime | None = None

        keys = await self._keys(namespace)
        for key in keys:
            value = await self.storage.get(key)
            if value is None:
                continue
            total_bytes += estimate_size(value)

            ts = document_timestamp(key, value)
            if ts is not None:
                oldest = ts if oldest is None else min(oldest, ts)
                newest = ts if newest is None else max(newest, ts)

        item_count = len(keys)
        return MemoryStats(
            total_bytes=total_bytes,
            item_count=item_count,
            avg_item_size=total_bytes // item_count if item_count else 0,
            oldest_timestamp=oldest,
            newest_timestamp=newest,
        )

    async def remove_old_items(self, namespace: str, cutoff: datetime) -> int:
        """Delete documents whose timestamp is strictly earlier than cutoff.

        Items without a parseable timestamp are left alone.
        """
        cutoff = to_utc(cutoff)
        deleted = 0
        for key in await self._keys(namespace):
            value = await self.storage.get(key)
            if value is None:
                continue
            ts = document_timestamp(key, value)
            if ts is not None and ts < cutoff and await self.storage.delete(key):
                deleted += 1

        logger.info(f"Removed {deleted} items older than {cutoff.isoformat()} from {namespace}")
        return deleted

    async def remove_oldest(self, namespace: str, count: int) -> int:
        """Delete up to count timestamped documents, oldest first."""
        if count <= 0:
            return 0

        dated = await self._timestamped(namespace)
        deleted = 0
        for key, _, _ in dated[:count]:
            if await self.storage.delete(key):
                deleted += 1

        logger.info(f"Removed {deleted} oldest items from {namespace}")
        return deleted

    async def remove_least_important(
        self,
        namespace: str,
        min_importance: float,
        max_to_remove: int,
    ) -> int:
        """Delete low-importance documents.

        Only the max_to_remove least important candidates are inspected, and
        of those only the ones strictly below min_importance are deleted.
        """
        ranked: list[tuple[str, float]] = []
        for key in await self._keys(namespace):
            value = await self.storage.get(key)
            if value is None:
                continue
            importance = document_importance(value)
            if importance is not None:
                ranked.append((key, importance))

        ranked.sort(key=lambda item: item[1])

        deleted = 0
        for key, importance in ranked[:max_to_remove]:
            if importance < min_importance and await self.storage.delete(key):
                deleted += 1

        logger.info(f"Removed {deleted} items below importance {min_importance} from {namespace}")
        return deleted

    async def compress_conversation_memory(
        self,
        namespace: str,
        keep_recent_count: int,
        llm: LLMProvider | None = None,
    ) -> int:
        """Replace all but the newest messages with a single summary.

        Messages are JSON documents with role, content and timestamp. The
        summary is written to <namespace>::summary::compressed and the
        summarized originals are deleted; there is no undo.

        Returns:
            Number of messages deleted
        """
        messages = await self._timestamped(namespace)
        to_compress = max(0, len(messages) - keep_recent_count)
        if to_compress == 0:
            return 0

        old = messages[:to_compress]
        lines = []
        for _, data, _ in old:
            role, content = data.get("role"), data.get("content")
            if isinstance(role, str) and isinstance(content, str):
                lines.append(f"{role}: {content}")

        llm = llm or self.llm
        if llm is not None and self.config.use_llm_compression:
            summary = await complete_text(
                llm,
                COMPRESS_MESSAGES_PROMPT.format(messages="".join(f"{line}\n" for line in lines)),
                operation="conversation_compression",
                task=TaskType.COMPRESSION,
            )
        else:
            summary = self._digest(lines)

        await self.storage.set(
            summary_key(namespace),
            MemoryValue.json({
                "summary": summary,
                "compressed_count": to_compress,
                "compressed_at": utc_now().isoformat(),
            }),
        )

        deleted = 0
        for key, _, _ in old:
            if await self.storage.delete(key):
                deleted += 1

        logger.info(f"Compressed {deleted} messages in {namespace}")
        return deleted

    async def compress(self, namespace: str, strategy: CompressionStrategy) -> int:
        """Shrink namespace toward item_count * compression_ratio items.

        Returns:
            Number of items removed (0 when under both thresholds)
        """
        if strategy not in SUPPORTED_STRATEGIES:
            raise ValidationError("strategy", "not supported by the compression policy", strategy.value)

        stats = await self.calculate_stats(namespace)
        if not self.needs_compression(stats):
            return 0

        target = int(stats.item_count * self.config.compression_ratio)
        excess = stats.item_count - target
        logger.info(
            f"Compressing {namespace} with {strategy.value}: "
            f"{stats.item_count} items, {stats.total_bytes} bytes, target {target}"
        )

        if strategy == CompressionStrategy.REMOVE_OLDEST:
            return await self.remove_oldest(namespace, excess)
        if strategy == CompressionStrategy.REMOVE_LEAST_IMPORTANT:
            return await self.remove_least_important(
                namespace, self.config.min_importance_threshold, excess
            )
        return await self.compress_conversation_memory(namespace, keep_recent_count=target)

    async def _keys(self, namespace: str) -> list[str]:
        """Keys in namespace, excluding the compressed summary."""
        keys = await self.storage.keys(MemoryQuery(namespace=namespace))
        skip = summary_key(namespace)
        return [key for key in keys if key != skip]

    async def _timestamped(self, namespace: str) -> list[tuple[str, dict[str, Any], datetime]]:
        """(key, document, timestamp) for dated documents, oldest first."""
        dated = []
        for key in await self._keys(namespace):
            value = await self.storage.get(key)
            if value is None:
                continue
            ts = document_timestamp(key, value)
            if ts is not None:
                dated.append((key, value.as_json(), ts))
        dated.sort(key=lambda item: item[2])
        return dated

    @staticmethod
    def _digest(lines: list[str]) -> str:
        """Summary without an LLM: count plus the last few message lines."""
        parts = [f"{len(lines)} earlier messages."]
        for line in lines[-DIGEST_MAX_LINES:]:
            parts.append(line[:DIGEST_LINE_LIMIT] + "..." if len(line) > DIGEST_LINE_LIMIT else line)
        return "\n".join(parts)
