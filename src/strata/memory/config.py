"""Memory manager configuration.

One explicit structure, built once. Optional collaborators (LLM, embedding
provider) are injected here; None means the heuristic paths are used.
"""

from dataclasses import dataclass, field
from typing import Any

from strata.core.config import Settings
from strata.llm.base import LLMProvider
from strata.memory.compression import CompressionConfig
from strata.memory.vector import EmbeddingProvider
from strata.storage.base import Storage


@dataclass
class MemoryConfig:
    """Everything an AgentMemoryManager needs."""

    backend: Storage
    agent_id: str
    session_id: str | None = None

    # Features
    persist_conversations: bool = False
    enable_semantic: bool = False
    enable_episodic: bool = False
    enable_working: bool = False

    # Limits
    max_conversation_length: int = 50
    max_episodes: int = 1000

    auto_generate_session_id: bool = True
    working_auto_clear: bool = True

    # Collaborators
    llm: LLMProvider | None = None
    embedding_provider: EmbeddingProvider | None = None

    compression: CompressionConfig = field(default_factory=CompressionConfig)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        backend: Storage | None = None,
        **overrides: Any,
    ) -> "MemoryConfig":
        """Build a config from Settings.

        The backend defaults to create_storage(settings); an SQLite backend
        built that way still needs ``await config.backend.connect()``.
        Collaborators come from the LiteLLM settings unless overridden.
        """
        # Deferred: the factories pull in backends and litellm
        from strata.llm.litellm_adapter import create_embedding_provider, create_llm
        from strata.storage import create_storage

        values: dict[str, Any] = {
            "backend": backend if backend is not None else create_storage(settings),
            "agent_id": settings.agent_id,
            "max_conversation_length": settings.max_conversation_length,
            "max_episodes": settings.max_episodes,
            "llm": create_llm(settings),
            "embedding_provider": create_embedding_provider(settings),
        }
        values.update(overrides)
        return cls(**values)
