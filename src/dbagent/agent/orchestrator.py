"""
Main orchestration loop for dbagent.

One call to :meth:`AgentOrchestrator.process_message` is one turn:

1. append the user message and ask the model, advertising every registered tool;
2. if the model answers in text, record it and stop;
3. otherwise record the assistant's tool calls, run them one after another, record one ``tool``
   message per call, then ask the model a second time (no tools) for the final answer.

Model-call failures abort the turn; tool failures never do.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import (
    ClassVar,
    Dict,
    List,
)

from dbagent.agent.model_client import BaseModelClient
from dbagent.agent.tool_executor import execute_tool_call
from dbagent.config import settings
from dbagent.core.conversation import (
    DEFAULT_CONVERSATION_ID,
    Conversation,
    ConversationStore,
)
from dbagent.core.schema import (
    Message,
    ModelResponse,
    ToolOutcome,
    TurnResult,
)
from dbagent.tools import (
    BaseTool,
    ToolInfo,
    ToolRegistry,
)

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    """Where the orchestrator is inside a turn."""

    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    TOOLS_REQUESTED = "tools_requested"
    EXECUTING_TOOLS = "executing_tools"
    AWAITING_FINAL_MODEL = "awaiting_final_model"


class AgentOrchestrator:
    """Drives the model-and-tool exchange for each user turn."""

    SYSTEM_PROMPT: ClassVar[str] = """\
You are a helpful AI agent with access to MongoDB data tools.
You can help users query, add, change and remove data, and provide insights about it.

Available tools:
- fetch_mongodb_data: find documents, fetch one document, count, list distinct values or run \
aggregation pipelines (at most 100 documents per call)
- insert_mongodb_data: insert one document or up to 100 documents at once
- update_mongodb_data: update or replace documents matching a non-empty filter
- delete_mongodb_data: delete documents matching a non-empty filter; requires confirmDeletion

Only delete or bulk-change data when the user clearly asked for it.
When users ask about data in the database, use the tools instead of guessing.
Be helpful and explain what you found in a clear, human-friendly way.
Always be concise but informative in your responses.
"""

    SYNTHESIS_PROMPT: ClassVar[str] = (
        "Based on the tool results, provide a helpful response to the user. "
        "If a tool reported an error, explain what went wrong."
    )

    APOLOGY: ClassVar[str] = "Sorry, I encountered an error while processing your request."

    def __init__(
        self,
        registry: ToolRegistry,
        model_client: BaseModelClient,
        conversations: ConversationStore | None = None,
        system_prompt: str | None = None,
    ):
        self.registry = registry
        self.model_client = model_client
        self.conversations = conversations or ConversationStore(
            idle_timeout=settings.CONVERSATION_IDLE_TIMEOUT
        )
        self.system_prompt = system_prompt or self.SYSTEM_PROMPT
        self.state = TurnState.IDLE
        logger.info("Agent initialized with tools: %s", registry.names())

    # ------------------------------------------------------------------ #
    # Turn processing
    # ------------------------------------------------------------------ #
    def process_message(
        self, user_text: str, conversation_id: str = DEFAULT_CONVERSATION_ID
    ) -> TurnResult:
        """Run one full turn for *user_text* and return the final answer plus tool activity."""
        logger.info("Processing user message for conversation '%s'", conversation_id)
        logger.debug("User message: %s", user_text)
        conversation = self.conversations.get(conversation_id)

        try:
            return self._run_turn(conversation, user_text)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Agent processing error: %s", exc, exc_info=True)
            return TurnResult(success=False, response=self.APOLOGY, error=str(exc))
        finally:
            self._set_state(TurnState.IDLE)

    def _run_turn(self, conversation: Conversation, user_text: str) -> TurnResult:
        conversation.append(Message.user(user_text))

        self._set_state(TurnState.AWAITING_MODEL)
        first = self._ask(conversation, self.system_prompt, with_tools=True)

        if not first.tool_calls:
            logger.info("Direct LLM response (no tools)")
            conversation.append(Message.assistant(first.content or ""))
            return TurnResult(success=True, response=first.content or "")

        self._set_state(TurnState.TOOLS_REQUESTED)
        logger.info(
            "LLM requested %d tool call(s): %s",
            len(first.tool_calls),
            [call.name for call in first.tool_calls],
        )
        conversation.append(Message.assistant(first.content or "", first.tool_calls))

        self._set_state(TurnState.EXECUTING_TOOLS)
        outcomes: List[ToolOutcome] = []
        for call in first.tool_calls:
            result = execute_tool_call(self.registry, call)
            conversation.append(Message.tool(result.tool_call_id, result.outcome.to_text()))
            outcomes.append(result.outcome)

        self._set_state(TurnState.AWAITING_FINAL_MODEL)
        final = self._ask(
            conversation, f"{self.system_prompt}\n\n{self.SYNTHESIS_PROMPT}", with_tools=False
        )
        conversation.append(Message.assistant(final.content or ""))

        return TurnResult(
            success=True,
            response=final.content or "",
            tools_used=[call.name for call in first.tool_calls],
            tool_results=outcomes,
        )

    def _ask(
        self, conversation: Conversation, system_prompt: str, with_tools: bool
    ) -> ModelResponse:
        messages = [Message.system(system_prompt), *conversation.snapshot()]
        tools = self.registry.function_specs() if with_tools else None
        return self.model_client.send(messages, tools)

    def _set_state(self, state: TurnState) -> None:
        if state is not self.state:
            logger.debug("Turn state: %s -> %s", self.state.value, state.value)
        self.state = state

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #
    def get_available_tools(self) -> List[BaseTool]:
        return self.registry.list()

    def get_tool_info(self) -> Dict[str, ToolInfo]:
        """Return ``{name: {name, description, parameters}}`` for every registered tool."""
        return self.registry.info()

    def clear_history(self, conversation_id: str = DEFAULT_CONVERSATION_ID) -> None:
        conversation = self.conversations.peek(conversation_id)
        if conversation is not None:
            conversation.clear()
        logger.info("Conversation history cleared for '%s'", conversation_id)

    def get_history(self, conversation_id: str = DEFAULT_CONVERSATION_ID) -> List[Message]:
        """Return a copy of the conversation log (empty for unknown conversations)."""
        conversation = self.conversations.peek(conversation_id)
        return conversation.snapshot() if conversation is not None else []
