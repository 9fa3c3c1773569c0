"""
LLM provider interface.

The memory layer only needs free-text completions (summaries, insights);
everything else about the model is the provider's business.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from strata.core.errors import ExternalServiceError
from strata.core.logging import get_logger
from strata.core.typing import MessageDict

logger = get_logger("llm.base")


class TaskType(Enum):
    """Why the memory layer is calling the model (for routing and logs)."""
    SUMMARIZATION = "summarization"
    INSIGHT_EXTRACTION = "insight_extraction"
    COMPRESSION = "compression"


@dataclass
class LLMResponse:
    """Response from LLM provider."""

    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    metadata: dict | None = None


@dataclass
class LLMConfig:
    """Configuration for LLM call."""

    model: str | None = None
    max_tokens: int = 1024
    temperature: float = 0.3
    system_prompt: str | None = None


class LLMProvider(ABC):
    """Abstract LLM provider."""

    @abstractmethod
    async def complete(
        self,
        messages: list[MessageDict],
        config: LLMConfig | None = None,
        task: TaskType | None = None,
    ) -> LLMResponse:
        """
        Generate completion from messages.

        Args:
            messages: Conversation messages ({"role", "content"} dicts)
            config: LLM configuration (provider defaults when None)
            task: Task type for routing/logging

        Returns:
            LLMResponse with content
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if provider is available."""
        ...


async def complete_text(
    llm: LLMProvider,
    prompt: str,
    *,
    operation: str,
    task: TaskType,
    config: LLMConfig | None = None,
) -> str:
    """Send a single user prompt and return the trimmed reply.

    Any provider failure is raised as ExternalServiceError(operation, cause).
    """
    messages = [{"role": "user", "content": prompt}]
    try:
        response = await llm.complete(messages, config, task=task)
    except Exception as e:
        logger.error(f"LLM call failed during {operation}: {e}")
        raise ExternalServiceError(operation, e) from e
    return response.content.strip()
