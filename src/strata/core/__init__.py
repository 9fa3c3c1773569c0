"""
Core module - configuration, logging, errors, shared types.

Components:
- config: Settings management via pydantic-settings
- errors: Exception hierarchy shared by every layer
- types: Chat message structures
- logging: Structured logging setup
"""

from strata.core.config import Settings
from strata.core.errors import (
    ExternalServiceError,
    SerializationError,
    StorageError,
    StrataError,
    ValidationError,
)
from strata.core.types import ChatMessage, MessageRole

__all__ = [
    "Settings",
    "ChatMessage",
    "MessageRole",
    "StrataError",
    "StorageError",
    "SerializationError",
    "ValidationError",
    "ExternalServiceError",
]
