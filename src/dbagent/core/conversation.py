"""
Conversation logs and the per-conversation store.

A :class:`Conversation` is an append-only list of :class:`~dbagent.core.schema.Message` objects.
The :class:`ConversationStore` keys conversations by an explicit identifier, creates them on first
use and drops the ones that have been idle for longer than ``idle_timeout`` seconds.
"""

import logging
import time
from typing import (
    Callable,
    Dict,
    List,
    Optional,
    Set,
)

from dbagent.core.schema import (
    Message,
    Role,
)

logger = logging.getLogger(__name__)

DEFAULT_CONVERSATION_ID = "default"


class ConversationError(ValueError):
    """Raised when an append would break the ordering rules of the log."""


class Conversation:
    """Ordered, append-only message log for one logical conversation."""

    def __init__(self, conversation_id: str = DEFAULT_CONVERSATION_ID):
        self.conversation_id = conversation_id
        self._messages: List[Message] = []
        # Calls of the latest assistant message that still wait for their result
        self._open_calls: Set[str] = set()

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: Message) -> None:
        """
        Append *message* to the log.

        A ``tool`` message must answer a call of the most recent ``assistant`` message that
        requested tools, and each call can be answered only once.  Call ids need only be unique
        within one assistant message; some back-ends restart their numbering every turn.
        """
        if message.role is Role.SYSTEM:
            raise ConversationError("system instructions are not stored in the conversation log")
        if message.role is Role.TOOL:
            call_id = message.tool_call_id
            if call_id not in self._open_calls:
                raise ConversationError(f"tool result for unknown or answered call id '{call_id}'")
            self._open_calls.discard(call_id)
        if message.tool_calls:
            ids = [call.id for call in message.tool_calls]
            if len(set(ids)) != len(ids):
                raise ConversationError(f"duplicate tool call ids in one message: {ids}")
            self._open_calls = set(ids)
        self._messages.append(message)

    def snapshot(self) -> List[Message]:
        """Return a copy of the log; later appends do not show up in it."""
        return list(self._messages)

    def clear(self) -> None:
        self._messages.clear()
        self._open_calls.clear()


class ConversationStore:
    """
    Maps conversation ids to :class:`Conversation` objects.

    Parameters
    ----------
    idle_timeout:
        Seconds after the last access before a conversation is evicted.  ``None`` or a value
        ``<= 0`` keeps conversations until they are discarded explicitly.
    clock:
        Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        idle_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._idle_timeout = idle_timeout if idle_timeout and idle_timeout > 0 else None
        self._clock = clock
        self._conversations: Dict[str, Conversation] = {}
        self._last_used: Dict[str, float] = {}

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._conversations

    def __len__(self) -> int:
        return len(self._conversations)

    def get(self, conversation_id: str = DEFAULT_CONVERSATION_ID) -> Conversation:
        """Return the conversation for *conversation_id*, creating it on first use."""
        self.evict_idle()
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            logger.debug("Creating conversation '%s'", conversation_id)
            conversation = Conversation(conversation_id)
            self._conversations[conversation_id] = conversation
        self._last_used[conversation_id] = self._clock()
        return conversation

    def peek(self, conversation_id: str = DEFAULT_CONVERSATION_ID) -> Optional[Conversation]:
        """Return an existing conversation without creating or touching it."""
        self.evict_idle()
        return self._conversations.get(conversation_id)

    def discard(self, conversation_id: str) -> bool:
        """Forget *conversation_id*; returns whether it existed."""
        self._last_used.pop(conversation_id, None)
        return self._conversations.pop(conversation_id, None) is not None

    def ids(self) -> List[str]:
        self.evict_idle()
        return list(self._conversations)

    def evict_idle(self) -> List[str]:
        """Drop every conversation idle for longer than the timeout; return the evicted ids."""
        if self._idle_timeout is None:
            return []
        now = self._clock()
        expired = [
            cid for cid, last in self._last_used.items() if now - last > self._idle_timeout
        ]
        for cid in expired:
            self.discard(cid)
            logger.info("Evicted idle conversation '%s'", cid)
        return expired
