"""Agent memory manager - entry point wiring identity to the memory views.

The manager holds identity (agent id, session id), the shared storage
handle and the configuration. Every view is built lazily over that one
handle; none of them calls back into the manager.
"""

import copy
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from strata.core.errors import ValidationError
from strata.core.logging import get_logger
from strata.core.types import ChatMessage
from strata.llm.base import LLMProvider
from strata.memory.compression import MemoryCompressor
from strata.memory.config import MemoryConfig
from strata.memory.conversation import ConversationMemoryStore, generate_session_id
from strata.memory.episodic import Episode, EpisodicMemory
from strata.memory.keys import Scope, child_key
from strata.memory.semantic import SemanticMemory
from strata.memory.shared import SharedKnowledgeBase
from strata.memory.value import MemoryValue
from strata.memory.working import WorkingMemory
from strata.storage.base import Storage

logger = get_logger("memory.manager")

DEFAULT_SESSION_ID = "default"


class AgentMemoryManager:
    """Per-agent, per-session facade over the memory views.

    Usage:
        manager = AgentMemoryManager(MemoryConfig(backend=storage, agent_id="a1",
                                                  persist_conversations=True))
        async with manager.session():
            await manager.add_conversation_message(ChatMessage.user("hi"))
    """

    def __init__(self, config: MemoryConfig):
        self._config = config
        self._storage = config.backend
        self._agent_id = config.agent_id
        self._session_id = self._resolve_session_id(config)

        self._conversation = ConversationMemoryStore(
            self._storage,
            self._session_id,
            max_length=config.max_conversation_length,
            persist=config.persist_conversations,
        )

        self._working: WorkingMemory | None = None
        self._semantic: SemanticMemory | None = None
        self._episodic: EpisodicMemory | None = None
        self._shared: SharedKnowledgeBase | None = None
        self._compressor: MemoryCompressor | None = None

        logger.debug(f"Memory manager ready: agent={self._agent_id}, session={self._session_id}")

    @staticmethod
    def _resolve_session_id(config: MemoryConfig) -> str:
        if config.session_id:
            return config.session_id
        if config.auto_generate_session_id:
            return generate_session_id()
        return DEFAULT_SESSION_ID

    # Identity

    @property
    def agent_id(self) -> str:
        return self._agent_id

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def storage(self) -> Storage:
        return self._storage

    @property
    def config(self) -> MemoryConfig:
        return self._config

    # Views

    @property
    def conversation(self) -> ConversationMemoryStore:
        return self._conversation

    @property
    def working(self) -> WorkingMemory:
        if not self._config.enable_working:
            raise ValidationError("enable_working", "working memory is disabled", False)
        if self._working is None:
            self._working = WorkingMemory(
                self._storage, self._session_id, auto_clear=self._config.working_auto_clear
            )
        return self._working

    @property
    def semantic(self) -> SemanticMemory:
        if not self._config.enable_semantic:
            raise ValidationError("enable_semantic", "semantic memory is disabled", False)
        if self._semantic is None:
            self._semantic = SemanticMemory(
                self._storage, self._agent_id, embedding_provider=self._config.embedding_provider
            )
        return self._semantic

    @property
    def episodic(self) -> EpisodicMemory:
        if not self._config.enable_episodic:
            raise ValidationError("enable_episodic", "episodic memory is disabled", False)
        if self._episodic is None:
            self._episodic = EpisodicMemory(
                self._storage, self._agent_id, max_episodes=self._config.max_episodes
            )
        return self._episodic

    @property
    def shared(self) -> SharedKnowledgeBase:
        if self._shared is None:
            self._shared = SharedKnowledgeBase(self._storage, self._agent_id)
        return self._shared

    @property
    def compressor(self) -> MemoryCompressor:
        if self._compressor is None:
            self._compressor = MemoryCompressor(
                self._storage, self._config.compression, llm=self._config.llm
            )
        return self._compressor

    # Keys

    def agent_key(self, key: str) -> str:
        return child_key(Scope.AGENT.value, self._agent_id, key)

    def session_key(self, key: str) -> str:
        return child_key(Scope.SESSION.value, self._session_id, key)

    @staticmethod
    def global_key(key: str) -> str:
        return child_key(Scope.GLOBAL.value, key)

    # Scoped values

    async def set_agent_memory(self, key: str, value: Any) -> None:
        await self._storage.set(self.agent_key(key), MemoryValue.of(value))

    async def get_agent_memory(self, key: str) -> MemoryValue | None:
        return await self._storage.get(self.agent_key(key))

    async def delete_agent_memory(self, key: str) -> bool:
        return await self._storage.delete(self.agent_key(key))

    async def set_session_memory(self, key: str, value: Any) -> None:
        await self._storage.set(self.session_key(key), MemoryValue.of(value))

    async def get_session_memory(self, key: str) -> MemoryValue | None:
        return await self._storage.get(self.session_key(key))

    async def delete_session_memory(self, key: str) -> bool:
        return await self._storage.delete(self.session_key(key))

    async def set_global_memory(self, key: str, value: Any) -> None:
        await self._storage.set(self.global_key(key), MemoryValue.of(value))

    async def get_global_memory(self, key: str) -> MemoryValue | None:
        return await self._storage.get(self.global_key(key))

    async def delete_global_memory(self, key: str) -> bool:
        return await self._storage.delete(self.global_key(key))

    # Conversation

    async def add_conversation_message(self, message: ChatMessage) -> None:
        await self._conversation.add_message(message)

    async def get_conversation_messages(self) -> list[ChatMessage]:
        return await self._conversation.get_messages()

    async def clear_conversation(self) -> None:
        await self._conversation.clear()

    async def record_episode(self, llm: LLMProvider | None = None) -> Episode:
        """Summarize the current conversation into a stored episode.

        Falls back to the configured LLM, then to the heuristic summary.
        """
        messages = await self._conversation.get_messages()
        episode = await self.episodic.create_episode_from_messages(
            messages,
            llm=llm or self._config.llm,
            session_id=self._session_id,
        )
        await self.episodic.store_episode(episode)
        logger.info(f"Recorded episode {episode.id} for session {self._session_id}")
        return episode

    # Lifecycle

    async def end_session(self) -> None:
        """Release session resources (clears working memory if auto_clear)."""
        if self._working is not None:
            await self._working.close()
        logger.debug(f"Session ended: {self._session_id}")

    @asynccontextmanager
    async def session(self) -> AsyncIterator["AgentMemoryManager"]:
        """Scope a session; end_session() runs on every exit path."""
        try:
            yield self
        finally:
            await self.end_session()

    def clone(self) -> "AgentMemoryManager":
        """Independent manager over the same storage and identity."""
        config = copy.copy(self._config)
        config.session_id = self._session_id
        return AgentMemoryManager(config)

    def __copy__(self) -> "AgentMemoryManager":
        return self.clone()
