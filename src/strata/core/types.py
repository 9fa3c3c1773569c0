"""
Shared type definitions.

Chat message format exchanged between the conversation store, episodic
summarization and the language model collaborator.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from strata.core.errors import SerializationError


class MessageRole(Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes; aware ones are returned unchanged."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 string, treating naive values as UTC."""
    return to_utc(datetime.fromisoformat(value))


@dataclass
class ChatMessage:
    """Single conversation turn."""

    role: MessageRole
    content: str
    timestamp: datetime = field(default_factory=utc_now)
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "ChatMessage":
        return cls(role=MessageRole.ASSISTANT, content=content)

    @classmethod
    def tool(cls, content: str) -> "ChatMessage":
        return cls(role=MessageRole.TOOL, content=content)

    @property
    def is_system(self) -> bool:
        return self.role == MessageRole.SYSTEM

    def to_llm_format(self) -> dict[str, str]:
        """Convert to LLM API message format."""
        return {"role": self.role.value, "content": self.content}

    def to_dict(self) -> dict[str, Any]:
        """Serialize for storage (timestamp as ISO-8601 UTC)."""
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatMessage":
        """Deserialize from a stored document."""
        try:
            role = MessageRole(data["role"])
            content = data["content"]
            timestamp = parse_timestamp(data["timestamp"]) if data.get("timestamp") else utc_now()
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError("deserialize_message", str(e)) from e

        return cls(
            role=role,
            content=content,
            timestamp=timestamp,
            metadata=dict(data.get("metadata") or {}),
        )
