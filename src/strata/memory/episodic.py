"""Episodic memory - summarized records of past interactions.

Episodes live under agent::<agent_id>::episodic::episode::<id>. Retention is
bounded by max_episodes: each store triggers a prune that evicts the least
important (then oldest) episodes. Every query loads the full collection and
filters in memory.

Prune is read-all, sort, delete with no isolation from concurrent writers;
an episode stored during a prune pass may be evicted or survive unexpectedly.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

from strata.core.errors import SerializationError, ValidationError
from strata.core.logging import get_logger
from strata.core.types import ChatMessage, MessageRole, parse_timestamp, to_utc, utc_now
from strata.core.typing import JSONDict
from strata.llm.base import LLMProvider, TaskType, complete_text
from strata.memory.keys import agent_namespace, child_key, strip_namespace
from strata.memory.value import MemoryValue
from strata.storage.base import MemoryQuery, Storage

logger = get_logger("memory.episodic")

SUMMARIZE_CONVERSATION_PROMPT = (
    "Summarize this conversation in 2-3 sentences, focusing on key topics and outcomes:\n\n{conversation}"
)

SUMMARIZE_EPISODES_PROMPT = (
    "Provide a coherent summary of these conversation episodes, "
    "highlighting key themes and progression:\n\n{episodes}"
)

EXTRACT_INSIGHTS_PROMPT = (
    "Extract 3-5 key insights or learnings from this conversation summary:\n\n{summary}"
)

TOPIC_VOCABULARY = (
    "rust",
    "python",
    "javascript",
    "programming",
    "coding",
    "algorithm",
    "database",
    "api",
    "frontend",
    "backend",
    "testing",
    "deployment",
    "performance",
    "security",
    "design",
    "architecture",
    "error",
    "debugging",
)
MAX_TOPICS = 5

IMPORTANT_TERMS = ("important", "critical", "urgent", "key", "essential", "decision")

# Heuristic summary line cap (no LLM)
SUMMARY_LINE_LIMIT = 200


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


@dataclass
class Episode:
    """Summarized interaction with an importance score in [0, 1]."""

    summary: str
    topics: list[str] = field(default_factory=list)
    importance: float = 0.5
    session_id: str | None = None
    insights: list[str] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        self.importance = _clamp(self.importance)

    def to_dict(self) -> JSONDict:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "summary": self.summary,
            "topics": self.topics,
            "importance": self.importance,
            "session_id": self.session_id,
            "insights": self.insights,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: JSONDict) -> "Episode":
        try:
            return cls(
                id=data["id"],
                timestamp=parse_timestamp(data["timestamp"]),
                summary=data["summary"],
                topics=list(data.get("topics") or []),
                importance=data.get("importance", 0.5),
                session_id=data.get("session_id"),
                insights=list(data.get("insights") or []),
                metadata=dict(data.get("metadata") or {}),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError("deserialize_episode", str(e)) from e


def format_transcript(messages: Sequence[ChatMessage]) -> str:
    """Render messages as 'Role: content' lines."""
    return "".join(f"{m.role.value.capitalize()}: {m.content}\n" for m in messages)


def extract_topics(text: str) -> list[str]:
    """Topics from the fixed vocabulary that occur in text (at most five)."""
    lowered = text.lower()
    return [topic for topic in TOPIC_VOCABULARY if topic in lowered][:MAX_TOPICS]


def calculate_importance(message_count: int, transcript: str) -> float:
    """Importance from conversation length, word count and flagged terms."""
    importance = 0.5

    if message_count > 10:
        importance += 0.2
    elif message_count > 5:
        importance += 0.1

    word_count = len(transcript.split())
    if word_count > 500:
        importance += 0.2
    elif word_count > 200:
        importance += 0.1

    lowered = transcript.lower()
    if any(term in lowered for term in IMPORTANT_TERMS):
        importance += 0.1

    return _clamp(importance)


def heuristic_summary(messages: Sequence[ChatMessage]) -> str:
    """Summary without a language model: opening user request plus size."""
    first_user = next((m for m in messages if m.role == MessageRole.USER), None)
    lines = [f"Conversation with {len(messages)} messages."]
    if first_user is not None:
        lines.append(f"User asked: {first_user.content.strip()}"[:SUMMARY_LINE_LIMIT])
    return "\n".join(lines)


def parse_insights(text: str) -> list[str]:
    """One insight per non-empty line, list markers stripped."""
    insights = []
    for line in text.splitlines():
        insight = line.strip().lstrip("0123456789.-*").strip()
        if insight:
            insights.append(insight)
    return insights


class EpisodicMemory:
    """Episode store for one agent."""

    def __init__(self, storage: Storage, agent_id: str, max_episodes: int = 1000):
        self.storage = storage
        self.agent_id = agent_id
        self.namespace = agent_namespace(agent_id, "episodic")
        self.max_episodes = max_episodes

    async def store_episode(self, episode: Episode) -> None:
        await self.storage.set(self._episode_key(episode.id), MemoryValue.json(episode.to_dict()))
        logger.debug(f"Stored episode {episode.id} (importance={episode.importance:.2f})")
        await self.prune_if_needed()

    async def get_episode(self, episode_id: str) -> Episode | None:
        value = await self.storage.get(self._episode_key(episode_id))
        if value is None:
            return None
        data = value.as_json()
        if not isinstance(data, dict):
            raise SerializationError("deserialize_episode", f"expected JSON document, got {value.kind.value}")
        return Episode.from_dict(data)

    async def delete_episode(self, episode_id: str) -> bool:
        return await self.storage.delete(self._episode_key(episode_id))

    async def count(self) -> int:
        return await self.storage.count(self.namespace)

    async def clear(self) -> None:
        await self.storage.clear(self.namespace)

    async def get_all_episodes(self) -> list[Episode]:
        keys = await self.storage.keys(MemoryQuery(namespace=self.namespace))
        episodes = []
        for episode_id in strip_namespace(child_key(self.namespace, "episode"), keys):
            episode = await self.get_episode(episode_id)
            if episode is not None:
                episodes.append(episode)
        return episodes

    async def get_recent_episodes(self, limit: int = 10) -> list[Episode]:
        """Newest first."""
        episodes = await self.get_all_episodes()
        episodes.sort(key=lambda e: e.timestamp, reverse=True)
        return episodes[:limit]

    async def find_by_topic(self, topic: str) -> list[Episode]:
        return [e for e in await self.get_all_episodes() if any(topic in t for t in e.topics)]

    async def find_by_importance(self, min_importance: float) -> list[Episode]:
        return [e for e in await self.get_all_episodes() if e.importance >= min_importance]

    async def find_by_date_range(self, start: datetime, end: datetime) -> list[Episode]:
        """Episodes with start <= timestamp <= end; naive bounds are read as UTC."""
        start, end = to_utc(start), to_utc(end)
        return [e for e in await self.get_all_episodes() if start <= e.timestamp <= end]

    async def prune_if_needed(self) -> int:
        """Evict lowest (importance, timestamp) episodes beyond max_episodes.

        Returns:
            Number of episodes deleted
        """
        count = await self.count()
        if count <= self.max_episodes:
            return 0

        episodes = await self.get_all_episodes()
        episodes.sort(key=lambda e: (e.importance, e.timestamp))

        excess = count - self.max_episodes
        for episode in episodes[:excess]:
            await self.delete_episode(episode.id)

        logger.info(f"Pruned {excess} episodes from {self.namespace}")
        return excess

    async def generate_context_summary(self, num_episodes: int = 5) -> str:
        """Plain-text digest of recent episodes for prompt context."""
        recent = await self.get_recent_episodes(num_episodes)
        if not recent:
            return ""

        summary = "Recent interaction history:\n"
        for episode in recent:
            summary += f"- [{episode.timestamp:%Y-%m-%d}] {episode.summary}\n"
            if episode.topics:
                summary += f"  Topics: {', '.join(episode.topics)}\n"
        return summary

    async def create_episode_from_messages(
        self,
        messages: Sequence[ChatMessage],
        llm: LLMProvider | None = None,
        session_id: str | None = None,
    ) -> Episode:
        """Build (but do not store) an episode from a conversation.

        With an LLM the summary is model-written; without one a heuristic
        summary is used. Topics and importance are always heuristic.
        """
        if not messages:
            raise ValidationError("messages", "must not be empty", "0 messages provided")

        transcript = format_transcript(messages)

        if llm is not None:
            summary = await complete_text(
                llm,
                SUMMARIZE_CONVERSATION_PROMPT.format(conversation=transcript),
                operation="summarization",
                task=TaskType.SUMMARIZATION,
            )
            topics = extract_topics(summary)
        else:
            summary = heuristic_summary(messages)
            topics = extract_topics(f"{summary}\n{transcript}")

        return Episode(
            summary=summary,
            topics=topics,
            importance=calculate_importance(len(messages), transcript),
            session_id=session_id,
        )

    async def generate_llm_summary(self, num_episodes: int, llm: LLMProvider) -> str:
        recent = await self.get_recent_episodes(num_episodes)
        if not recent:
            return "No recent episodes to summarize."

        episode_text = "".join(
            f"{i}. [{e.timestamp:%Y-%m-%d}] {e.summary}\n" for i, e in enumerate(recent, 1)
        )
        return await complete_text(
            llm,
            SUMMARIZE_EPISODES_PROMPT.format(episodes=episode_text),
            operation="episode_summary",
            task=TaskType.SUMMARIZATION,
        )

    async def extract_insights(self, episode: Episode, llm: LLMProvider) -> list[str]:
        response = await complete_text(
            llm,
            EXTRACT_INSIGHTS_PROMPT.format(summary=episode.summary),
            operation="insight_extraction",
            task=TaskType.INSIGHT_EXTRACTION,
        )
        return parse_insights(response)

    def _episode_key(self, episode_id: str) -> str:
        return child_key(self.namespace, "episode", episode_id)
