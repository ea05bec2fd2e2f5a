"""End-to-end turns through the orchestrator with a scripted model and an in-memory store."""

import json
from typing import (
    Any,
    Mapping,
)

from dbagent.agent.model_client import ModelClientError
from dbagent.agent.orchestrator import (
    AgentOrchestrator,
    TurnState,
)
from dbagent.core.schema import (
    ModelResponse,
    Role,
    ToolCallRequest,
    ToolOutcome,
)
from dbagent.db.mongo import MongoStore
from dbagent.tools import (
    BaseTool,
    ToolRegistry,
)


def _call(call_id: str, name: str, **arguments: Any) -> ToolCallRequest:
    return ToolCallRequest(id=call_id, name=name, arguments=json.dumps(arguments))


def _text(content: str) -> ModelResponse:
    return ModelResponse(content=content)


def test_direct_answer_appends_two_messages(make_agent) -> None:
    """A text-only reply is recorded without any tool round."""

    agent, client = make_agent(_text("Hello there"))
    result = agent.process_message("hi")

    assert result.success
    assert result.response == "Hello there"
    assert result.tools_used == []
    history = agent.get_history()
    assert [m.role for m in history] == [Role.USER, Role.ASSISTANT]
    assert len(client.calls) == 1
    sent, tools = client.calls[0]
    assert sent[0].role is Role.SYSTEM
    assert [spec["function"]["name"] for spec in tools] == [
        "fetch_mongodb_data",
        "insert_mongodb_data",
        "update_mongodb_data",
        "delete_mongodb_data",
    ]


def test_tool_round_records_calls_results_and_answer(make_agent, store: MongoStore) -> None:
    store.get_collection("users").insert_many([{"name": "Ann", "age": 31}, {"name": "Bo"}])
    agent, client = make_agent(
        ModelResponse(
            content=None,
            tool_calls=[
                _call("c1", "fetch_mongodb_data", collection="users", operation="count"),
                _call(
                    "c2",
                    "insert_mongodb_data",
                    collection="users",
                    operation="insertOne",
                    data={"name": "Cy"},
                ),
            ],
        ),
        _text("There were 2 users; I added Cy."),
    )

    result = agent.process_message("count users then add Cy", conversation_id="s1")

    assert result.success
    assert result.response == "There were 2 users; I added Cy."
    assert result.tools_used == ["fetch_mongodb_data", "insert_mongodb_data"]
    assert [outcome.success for outcome in result.tool_results] == [True, True]
    assert result.tool_results[0].details["count"] == 2

    history = agent.get_history("s1")
    assert len(history) == 2 + 3
    assert [m.role for m in history] == [
        Role.USER,
        Role.ASSISTANT,
        Role.TOOL,
        Role.TOOL,
        Role.ASSISTANT,
    ]
    assert [m.tool_call_id for m in history[2:4]] == ["c1", "c2"]
    assert json.loads(history[2].content)["count"] == 2

    second_messages, second_tools = client.calls[1]
    assert second_tools is None
    assert AgentOrchestrator.SYNTHESIS_PROMPT in second_messages[0].content
    assert [m.role for m in second_messages[1:]] == [m.role for m in history[:4]]
    assert store.get_collection("users").count_documents({}) == 3


def test_failed_tool_is_reported_and_batch_continues(make_agent) -> None:
    agent, _ = make_agent(
        ModelResponse(
            tool_calls=[
                _call(
                    "d1",
                    "delete_mongodb_data",
                    collection="users",
                    operation="deleteMany",
                    filter={},
                    confirmDeletion=True,
                ),
                _call("d2", "no_such_tool"),
                _call("d3", "fetch_mongodb_data", collection="users", operation="count"),
            ]
        ),
        _text("The delete was refused."),
    )

    result = agent.process_message("wipe users")

    assert result.success
    assert [outcome.success for outcome in result.tool_results] == [False, False, True]
    assert result.tool_results[1].error == "Unknown tool: no_such_tool"
    tool_messages = [m for m in agent.get_history() if m.role is Role.TOOL]
    assert [m.tool_call_id for m in tool_messages] == ["d1", "d2", "d3"]
    assert json.loads(tool_messages[0].content)["success"] is False


def test_raising_custom_tool_does_not_abort_the_batch(make_agent) -> None:
    class _Boom(BaseTool):
        name = "boom"
        description = "Always raises."
        parameters = {"type": "object", "properties": {}}

        def execute(self, params: Mapping[str, Any]) -> ToolOutcome:
            raise RuntimeError("kaboom")

    class _Ok(BaseTool):
        name = "ok"
        description = "Always succeeds."
        parameters = {"type": "object", "properties": {}}

        def execute(self, params: Mapping[str, Any]) -> ToolOutcome:
            return ToolOutcome.ok("ok", "-")

    registry = ToolRegistry()
    registry.register(_Boom())
    registry.register(_Ok())
    agent, _ = make_agent(
        ModelResponse(tool_calls=[_call("b1", "boom"), _call("b2", "ok")]),
        _text("done"),
        tools=registry,
    )

    result = agent.process_message("go")

    assert result.success
    assert [outcome.success for outcome in result.tool_results] == [False, True]
    assert "kaboom" in result.tool_results[0].error


def test_model_error_on_first_call_returns_apology(make_agent) -> None:
    agent, _ = make_agent(ModelClientError("LLM request failed: Invalid API key"))

    result = agent.process_message("hi")

    assert not result.success
    assert result.response == AgentOrchestrator.APOLOGY
    assert "Invalid API key" in result.error
    assert [m.role for m in agent.get_history()] == [Role.USER]
    assert agent.state is TurnState.IDLE


def test_model_error_on_second_call_keeps_partial_log(make_agent) -> None:
    """Messages appended before the failure stay in the log."""

    agent, _ = make_agent(
        ModelResponse(
            tool_calls=[_call("c1", "fetch_mongodb_data", collection="users", operation="count")]
        ),
        ModelClientError("timeout"),
    )

    result = agent.process_message("how many users?")

    assert not result.success
    assert result.error == "timeout"
    assert [m.role for m in agent.get_history()] == [Role.USER, Role.ASSISTANT, Role.TOOL]
    assert agent.state is TurnState.IDLE


def test_conversations_are_isolated(make_agent) -> None:
    agent, client = make_agent(_text("one"), _text("two"))

    agent.process_message("first", conversation_id="a")
    agent.process_message("second", conversation_id="b")

    assert [m.content for m in agent.get_history("a")] == ["first", "one"]
    assert [m.content for m in agent.get_history("b")] == ["second", "two"]
    second_request = client.calls[1][0]
    assert [m.content for m in second_request[1:]] == ["second"]


def test_clear_history_then_get_is_empty(make_agent) -> None:
    agent, _ = make_agent(_text("hello"))
    agent.process_message("hi", conversation_id="x")

    agent.clear_history("x")
    agent.clear_history("never-used")

    assert agent.get_history("x") == []
    assert agent.get_history("never-used") == []
    assert "never-used" not in agent.conversations


def test_get_tool_info_matches_registered_tools(make_agent, registry: ToolRegistry) -> None:
    agent, _ = make_agent()

    info = agent.get_tool_info()

    assert list(info) == registry.names()
    for name, entry in info.items():
        tool = registry.get(name)
        assert entry == {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.parameters,
        }
    assert [tool.name for tool in agent.get_available_tools()] == registry.names()


def test_call_ids_reused_in_a_later_turn(make_agent) -> None:
    """A back-end that restarts call numbering each turn must not break the next turn."""

    count_call = {"collection": "users", "operation": "count"}
    agent, _ = make_agent(
        ModelResponse(tool_calls=[_call("call_0", "fetch_mongodb_data", **count_call)]),
        _text("none yet"),
        ModelResponse(tool_calls=[_call("call_0", "fetch_mongodb_data", **count_call)]),
        _text("still none"),
    )

    first = agent.process_message("how many users?")
    second = agent.process_message("and now?")

    assert first.success
    assert second.success
    assert second.response == "still none"
    assert len(agent.get_history()) == 8


def test_generated_id_from_a_tool_result_can_target_the_document(
    make_agent, store: MongoStore
) -> None:
    """Insert, then delete the new document by the ``_id`` the model read from the tool result."""

    agent, client = make_agent(
        ModelResponse(
            tool_calls=[
                _call(
                    "c1",
                    "insert_mongodb_data",
                    collection="products",
                    operation="insertOne",
                    data={"name": "Lamp"},
                )
            ]
        ),
        _text("Added the lamp."),
    )
    assert agent.process_message("add a lamp").success

    tool_message = next(m for m in agent.get_history() if m.role is Role.TOOL)
    (new_id,) = json.loads(tool_message.content)["insertedIds"]
    assert set(new_id) == {"$oid"}
    client.responses.extend(
        [
            ModelResponse(
                tool_calls=[
                    _call(
                        "c2",
                        "delete_mongodb_data",
                        collection="products",
                        operation="deleteOne",
                        filter={"_id": new_id},
                        confirmDeletion=True,
                    )
                ]
            ),
            _text("Removed it again."),
        ]
    )

    result = agent.process_message("remove that lamp")

    assert result.tool_results[0].success
    assert result.tool_results[0].details["deletedCount"] == 1
    assert store.get_collection("products").count_documents({}) == 0
