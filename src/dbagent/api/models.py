"""
Pydantic models for the dbagent API requests and responses.
"""

from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)

from dbagent.core.conversation import DEFAULT_CONVERSATION_ID


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class ChatRequest(BaseModel):
    """Incoming user message."""

    message: str = Field(..., description="User message for the agent")
    conversation_id: Optional[str] = Field(
        None, description="Conversation to continue (defaults to the shared one)"
    )


class ChatResponse(BaseModel):
    """API response returned to the caller."""

    success: bool
    response: str
    conversation_id: str = DEFAULT_CONVERSATION_ID
    tools_used: List[str] | None = None
    tool_results: List[Dict[str, Any]] | None = None
    error: str | None = None


class ToolsResponse(BaseModel):
    """Registered tools keyed by name."""

    success: bool = True
    tools: Dict[str, Dict[str, Any]]
    count: int


class HistoryResponse(BaseModel):
    """Snapshot of one conversation log."""

    success: bool = True
    conversation_id: str
    history: List[Dict[str, Any]]
    count: int


class ClearRequest(BaseModel):
    """Which conversation to reset."""

    conversation_id: Optional[str] = None
