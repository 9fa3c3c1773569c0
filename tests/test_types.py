"""Tests for core types and errors."""

from datetime import datetime, timezone

import pytest

from strata.core.errors import (
    ExternalServiceError,
    SerializationError,
    StorageError,
    StrataError,
    ValidationError,
)
from strata.core.types import ChatMessage, MessageRole, parse_timestamp, to_utc


def test_message_to_llm_format():
    """Message converts to LLM API format."""
    msg = ChatMessage.user("Hello")
    assert msg.to_llm_format() == {"role": "user", "content": "Hello"}


def test_message_constructors():
    assert ChatMessage.system("s").is_system
    assert ChatMessage.assistant("a").role == MessageRole.ASSISTANT
    assert ChatMessage.tool("t").role == MessageRole.TOOL
    assert not ChatMessage.user("u").is_system


def test_message_dict_round_trip():
    msg = ChatMessage(
        role=MessageRole.ASSISTANT,
        content="Hi",
        timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        metadata={"model": "x"},
    )
    data = msg.to_dict()
    assert data["timestamp"] == "2024-05-01T12:00:00+00:00"
    assert ChatMessage.from_dict(data) == msg


def test_message_from_bad_dict():
    with pytest.raises(SerializationError):
        ChatMessage.from_dict({"role": "robot", "content": "x"})
    with pytest.raises(SerializationError):
        ChatMessage.from_dict({"role": "user"})


def test_parse_timestamp_assumes_utc():
    assert parse_timestamp("2024-01-01T00:00:00").tzinfo == timezone.utc


def test_to_utc():
    assert to_utc(datetime(2024, 1, 1)) == datetime(2024, 1, 1, tzinfo=timezone.utc)
    aware = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert to_utc(aware) is aware


def test_errors_carry_fields():
    cause = OSError("disk full")
    err = StorageError("set", cause)
    assert err.operation == "set"
    assert err.cause is cause
    assert "disk full" in str(err)

    err = ValidationError("messages", "must not be empty", "0 messages provided")
    assert (err.field, err.rule, err.observed) == ("messages", "must not be empty", "0 messages provided")

    assert isinstance(ExternalServiceError("summarization", "timeout"), StrataError)
    assert SerializationError("deserialize_value").detail is None
