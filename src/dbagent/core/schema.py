"""
Schema definitions for model <-> orchestrator <-> tool messages.

These data models serve as the contract between the model clients, the orchestration loop, and
individual tools.  We keep them separate from runtime logic so they can be imported anywhere without
side-effects.
"""

import json
from enum import Enum
from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from bson import json_util
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


class Role(str, Enum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    SYSTEM = "system"


class ToolCallRequest(BaseModel):
    """A call that the model wants the agent to execute."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Identifier used to correlate the tool result")
    name: str = Field(..., description="Registered tool name")
    arguments: Any = Field(
        default=None,
        description="Raw arguments: a JSON string or an already decoded mapping",
    )

    def arguments_json(self) -> str:
        """Return the arguments as a JSON string, the form chat-completion APIs expect."""
        if self.arguments is None:
            return "{}"
        if isinstance(self.arguments, str):
            return self.arguments
        return json_util.dumps(self.arguments)


class Message(BaseModel):
    """One entry in a conversation log."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: Optional[str] = None
    tool_calls: List[ToolCallRequest] = Field(default_factory=list)
    tool_call_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_role_fields(self) -> "Message":
        if self.role is Role.TOOL and not self.tool_call_id:
            raise ValueError("tool messages require a tool_call_id")
        if self.role is not Role.TOOL and self.tool_call_id is not None:
            raise ValueError("only tool messages may carry a tool_call_id")
        if self.tool_calls and self.role is not Role.ASSISTANT:
            raise ValueError("only assistant messages may carry tool_calls")
        return self

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(
        cls, content: Optional[str], tool_calls: Optional[List[ToolCallRequest]] = None
    ) -> "Message":
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tool_calls or [])

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> "Message":
        return cls(role=Role.TOOL, content=content, tool_call_id=tool_call_id)

    def to_openai(self) -> Dict[str, Any]:
        """Render the message in the OpenAI chat-completions wire format."""
        out: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            out["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments_json()},
                }
                for call in self.tool_calls
            ]
        if self.tool_call_id is not None:
            out["tool_call_id"] = self.tool_call_id
        return out


class ModelResponse(BaseModel):
    """What a model client hands back after one completion round."""

    content: Optional[str] = None
    tool_calls: List[ToolCallRequest] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Tool outcomes
# ---------------------------------------------------------------------------
class ErrorKind(str, Enum):
    """Why a tool call failed."""

    VALIDATION = "validation"  # bad or missing arguments
    GUARD = "guard"  # a safety limit tripped
    STORE = "store"  # the document store rejected the operation or is down
    UNKNOWN_TOOL = "unknown_tool"
    BAD_ARGUMENTS = "bad_arguments"  # arguments could not be decoded
    EXECUTION = "execution"  # the tool raised unexpectedly


class ToolOutcome(BaseModel):
    """
    Result of a single tool execution.

    Successful outcomes carry an operation-specific ``details`` mapping (documents, counts,
    generated ids, ...).  Failed outcomes carry the error message and its :class:`ErrorKind`.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    success: bool
    operation: Optional[str] = None
    collection: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, operation: str, collection: str, **details: Any) -> "ToolOutcome":
        return cls(success=True, operation=operation, collection=collection, details=details)

    @classmethod
    def fail(
        cls,
        error: str,
        kind: ErrorKind = ErrorKind.VALIDATION,
        operation: Optional[str] = None,
        collection: Optional[str] = None,
    ) -> "ToolOutcome":
        return cls(
            success=False, operation=operation, collection=collection, error=error, error_kind=kind
        )

    def to_payload(self) -> Dict[str, Any]:
        """Flatten into the object the model (and the HTTP layer) sees."""
        if self.success:
            return {
                "success": True,
                "operation": self.operation,
                "collection": self.collection,
                **self.details,
            }
        return {
            "success": False,
            "error": self.error,
            "operation": self.operation,
            "collection": self.collection,
        }

    def to_text(self) -> str:
        """Encode the payload as JSON, with BSON types (ObjectId, datetime) in extended form."""
        return json_util.dumps(self.to_payload())

    def to_jsonable(self) -> Dict[str, Any]:
        """Payload made of plain JSON types only."""
        return json.loads(self.to_text())


class ToolCallResult(BaseModel):
    """Outcome of one tool call, correlated to the request by id."""

    tool_call_id: str
    tool_name: str
    outcome: ToolOutcome


class TurnResult(BaseModel):
    """Value returned by the orchestrator for one user turn."""

    success: bool
    response: str
    tools_used: List[str] = Field(default_factory=list)
    tool_results: List[ToolOutcome] = Field(default_factory=list)
    error: Optional[str] = None
