"""Dispatches tool calls through a :class:`~dbagent.tools.ToolRegistry` and wraps errors."""

import logging
from collections.abc import Mapping
from typing import (
    Any,
    Dict,
)

from bson import json_util
from bson.errors import BSONError

from dbagent.core.schema import (
    ErrorKind,
    ToolCallRequest,
    ToolCallResult,
    ToolOutcome,
)
from dbagent.tools import (
    ToolNotFoundError,
    ToolRegistry,
)

logger = logging.getLogger(__name__)


class ToolArgumentsError(ValueError):
    """Raised when the model's tool arguments cannot be decoded into an object."""


def decode_arguments(raw: Any) -> Dict[str, Any]:
    """
    Decode the *raw* arguments of a tool call.

    OpenAI-compatible endpoints send a JSON string; other providers hand over a mapping already.
    An empty string or *None* means "no arguments".  Extended JSON values such as
    ``{"$oid": ...}`` or ``{"$date": ...}`` are turned back into BSON types, so ids that reached
    the model through :meth:`ToolOutcome.to_text` can be used in later filters.
    """
    if raw is None or raw == "":
        return {}
    try:
        if isinstance(raw, Mapping):
            raw = json_util.dumps(raw)
        if isinstance(raw, str):
            raw = json_util.loads(raw)
    except (ValueError, TypeError, KeyError, BSONError) as exc:
        raise ToolArgumentsError(f"arguments are not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ToolArgumentsError("arguments must be a JSON object")
    return raw


def execute_tool_call(registry: ToolRegistry, call: ToolCallRequest) -> ToolCallResult:
    """
    Resolve *call* in *registry* and run it.

    This never raises: an unknown tool, undecodable arguments or an exception escaping the tool
    all come back as a failed :class:`ToolOutcome`, so one bad call cannot abort its siblings.
    """

    try:
        tool = registry.get(call.name)
    except ToolNotFoundError:
        logger.warning("Model requested unknown tool '%s'", call.name)
        return ToolCallResult(
            tool_call_id=call.id,
            tool_name=call.name,
            outcome=ToolOutcome.fail(f"Unknown tool: {call.name}", kind=ErrorKind.UNKNOWN_TOOL),
        )

    try:
        params = decode_arguments(call.arguments)
    except ToolArgumentsError as exc:
        logger.warning("Bad arguments for tool '%s': %s", call.name, exc)
        return ToolCallResult(
            tool_call_id=call.id,
            tool_name=call.name,
            outcome=ToolOutcome.fail(
                f"Invalid arguments for tool '{call.name}': {exc}", kind=ErrorKind.BAD_ARGUMENTS
            ),
        )

    try:
        logger.info("Executing tool '%s'", call.name)
        logger.debug("Tool '%s' parameters: %s", call.name, params)
        outcome = tool.execute(params)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unhandled error in tool '%s'", call.name)
        outcome = ToolOutcome.fail(
            f"Tool '{call.name}' raised an error: {exc}",
            kind=ErrorKind.EXECUTION,
            operation=_str_or_none(params.get("operation")),
            collection=_str_or_none(params.get("collection")),
        )
    else:
        if outcome.success:
            logger.info("Tool '%s' completed", call.name)
        else:
            logger.info("Tool '%s' failed: %s", call.name, outcome.error)

    return ToolCallResult(tool_call_id=call.id, tool_name=call.name, outcome=outcome)


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None
