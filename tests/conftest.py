"""Shared fixtures: an in-memory MongoDB, the store tools and a scripted model client."""

from typing import (
    Any,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
)

import mongomock
import pytest

from dbagent.agent.model_client import BaseModelClient
from dbagent.agent.orchestrator import AgentOrchestrator
from dbagent.core.conversation import ConversationStore
from dbagent.core.schema import (
    Message,
    ModelResponse,
)
from dbagent.db.mongo import MongoStore
from dbagent.tools import (
    ToolRegistry,
    build_store_registry,
)


class ScriptedModelClient(BaseModelClient):
    """Replays canned responses (or raises canned exceptions) and records every request."""

    def __init__(self, *responses: Any):
        self.responses: List[Any] = list(responses)
        self.calls: List[Tuple[List[Message], Optional[List[Mapping[str, Any]]]]] = []

    def send(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> ModelResponse:
        self.calls.append((list(messages), list(tools) if tools is not None else None))
        if not self.responses:
            raise AssertionError("model called more often than scripted")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def store() -> MongoStore:
    return MongoStore(client=mongomock.MongoClient(), database="dbagent_test")


@pytest.fixture
def registry(store: MongoStore) -> ToolRegistry:
    return build_store_registry(store)


@pytest.fixture
def make_agent(registry: ToolRegistry):
    """Factory: ``make_agent(*responses, tools=None)`` -> (orchestrator, scripted client)."""

    def _make(
        *responses: Any, tools: Optional[ToolRegistry] = None
    ) -> Tuple[AgentOrchestrator, ScriptedModelClient]:
        client = ScriptedModelClient(*responses)
        tools = registry if tools is None else tools
        agent = AgentOrchestrator(tools, client, conversations=ConversationStore())
        return agent, client

    return _make
