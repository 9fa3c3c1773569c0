"""Conversation memory - ordered, length-bounded chat history per session.

Layout under session::<session_id>::conversation:
    ::msg_<index>   message documents, indices dense from 0
    ::count         integer counter (source of truth for length)

The counter update is a plain read-increment-write; concurrent add_message
calls on the same session can lose updates.
"""

from uuid import uuid4

from strata.core.errors import SerializationError
from strata.core.logging import get_logger
from strata.core.types import ChatMessage
from strata.memory.keys import child_key, session_namespace
from strata.memory.value import MemoryValue
from strata.storage.base import Storage

logger = get_logger("memory.conversation")


def generate_session_id() -> str:
    """Generate a unique session ID."""
    return str(uuid4())


class ConversationMemoryStore:
    """Bounded message log with positional compaction.

    When persist is False every operation is a no-op returning empty/zero;
    there is no in-process fallback cache.
    """

    def __init__(
        self,
        storage: Storage,
        session_id: str,
        max_length: int = 50,
        persist: bool = True,
    ):
        self.storage = storage
        self.session_id = session_id
        self.namespace = session_namespace(session_id, "conversation")
        self.max_length = max_length
        self.persist = persist

    async def add_message(self, message: ChatMessage) -> None:
        """Append message, then prune if the log exceeds max_length."""
        if not self.persist:
            return

        count = await self.count()
        await self.storage.set(self._message_key(count), self._to_value(message))
        await self._set_count(count + 1)

        if count + 1 > self.max_length:
            await self._prune()

    async def get_messages(self) -> list[ChatMessage]:
        """Messages in order; stops at the first missing index."""
        if not self.persist:
            return []

        count = await self.count()
        messages = []
        for index in range(count):
            value = await self.storage.get(self._message_key(index))
            if value is None:
                logger.debug(f"Gap at index {index} in {self.namespace}, truncating history")
                break
            messages.append(self._from_value(value))
        return messages

    async def count(self) -> int:
        if not self.persist:
            return 0

        value = await self.storage.get(self._count_key())
        if value is not None:
            count = value.as_integer()
            if count is not None:
                return count
        return 0

    async def is_empty(self) -> bool:
        return await self.count() == 0

    async def clear(self) -> None:
        """Remove all messages except a system message at index 0."""
        if not self.persist:
            return

        system_message = await self._system_message()
        await self.storage.clear(self.namespace)

        if system_message is not None:
            await self.add_message(system_message)

    async def _prune(self) -> None:
        """Delete the oldest non-system messages and shift the rest down."""
        count = await self.count()
        if count <= self.max_length:
            return

        start = 1 if await self._system_message() is not None else 0
        excess = count - self.max_length

        await self.storage.mdelete(
            [self._message_key(index) for index in range(start, start + excess)]
        )

        # Rewrite-then-delete keeps every surviving message readable mid-shift
        for index in range(start + excess, count):
            old_key = self._message_key(index)
            value = await self.storage.get(old_key)
            if value is not None:
                await self.storage.set(self._message_key(index - excess), value)
                await self.storage.delete(old_key)

        await self._set_count(self.max_length)
        logger.debug(f"Pruned {excess} messages from {self.namespace}")

    async def _system_message(self) -> ChatMessage | None:
        if await self.count() == 0:
            return None
        value = await self.storage.get(self._message_key(0))
        if value is None:
            return None
        message = self._from_value(value)
        return message if message.is_system else None

    async def _set_count(self, count: int) -> None:
        await self.storage.set(self._count_key(), MemoryValue.integer(count))

    def _message_key(self, index: int) -> str:
        return child_key(self.namespace, f"msg_{index}")

    def _count_key(self) -> str:
        return child_key(self.namespace, "count")

    @staticmethod
    def _to_value(message: ChatMessage) -> MemoryValue:
        return MemoryValue.json(message.to_dict())

    @staticmethod
    def _from_value(value: MemoryValue) -> ChatMessage:
        data = value.as_json()
        if not isinstance(data, dict):
            raise SerializationError("deserialize_message", f"expected JSON document, got {value.kind.value}")
        return ChatMessage.from_dict(data)
