"""
Model clients for dbagent.

This module is the only place that *directly* calls an LLM.  Everything else (orchestrator, tools,
conversations) stays model-agnostic and talks to a :class:`BaseModelClient`.

We support three back-ends out of the box:

1. **OpenRouter** (or any OpenAI-compatible endpoint) over plain ``httpx``.
2. **OpenAI** via the official SDK.
3. **Anthropic** via the official SDK, translating tool calls to and from ``tool_use`` blocks.

Additional providers can be added by subclassing :class:`BaseModelClient` and registering via
:func:`register_model_client`.
"""

import json
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Type,
)

import httpx
from pydantic import (
    BaseModel,
    Field,
    ValidationError,
)

from dbagent.config import settings
from dbagent.core.schema import (
    Message,
    ModelResponse,
    Role,
    ToolCallRequest,
)

logger = logging.getLogger(__name__)


class ModelClientError(RuntimeError):
    """Raised when the completion endpoint fails or answers with something unusable."""


# ---------------------------------------------------------------------------
# Pydantic models for response validation (OpenAI-compatible wire format)
# ---------------------------------------------------------------------------
class _WireFunction(BaseModel):
    name: str
    arguments: Any = None


class _WireToolCall(BaseModel):
    id: str
    type: str = "function"
    function: _WireFunction


class _WireMessage(BaseModel):
    content: Optional[str] = None
    tool_calls: Optional[List[_WireToolCall]] = None


class _WireChoice(BaseModel):
    message: _WireMessage


class ChatCompletion(BaseModel):
    """Validates the parts of a chat-completions reply we rely on."""

    choices: List[_WireChoice] = Field(..., min_length=1)


def parse_chat_completion(body: Mapping[str, Any]) -> ModelResponse:
    """Turn a chat-completions JSON body into a :class:`ModelResponse`."""
    try:
        parsed = ChatCompletion.model_validate(body)
    except ValidationError as exc:
        raise ModelClientError(f"Malformed LLM response: {exc}") from exc

    message = parsed.choices[0].message
    calls = [
        ToolCallRequest(id=call.id, name=call.function.name, arguments=call.function.arguments)
        for call in message.tool_calls or []
        if call.type == "function"
    ]
    return ModelResponse(content=message.content, tool_calls=calls)


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_CLIENT_REGISTRY: dict[str, Type["BaseModelClient"]] = {}


def register_model_client(name: str) -> Callable:
    """Decorator to register a model client class under *name*."""

    def wrapper(cls: Type["BaseModelClient"]) -> Type["BaseModelClient"]:
        _CLIENT_REGISTRY[name] = cls
        return cls

    return wrapper


def load_model_client(name: str | None = None, **kwargs: Any) -> "BaseModelClient":
    """
    Factory that returns an instantiated model client.

    Fallback order:
    1. *name* arg
    2. ``settings.MODEL_CLIENT`` env/.env option
    3. default: ``"openrouter"``
    """

    target = name or getattr(settings, "MODEL_CLIENT", "openrouter")
    cls = _CLIENT_REGISTRY.get(target.lower())
    if cls is None:
        raise ValueError(f"Model client '{target}' is not registered.")
    return cls(**kwargs)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseModelClient(ABC):
    """Sends a message log (plus optional tool specs) and returns content or tool calls."""

    @abstractmethod
    def send(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> ModelResponse:
        """
        Run one completion round.

        Parameters
        ----------
        messages:
            The full log, system instruction first.
        tools:
            ``{"type": "function", ...}`` specs.  When given, the model may answer with tool
            calls (``tool_choice="auto"``); when omitted it must answer in text.

        Raises
        ------
        ModelClientError
            On transport failures, non-2xx replies or malformed responses.
        """


# ---------------------------------------------------------------------------
# Concrete clients
# ---------------------------------------------------------------------------
@register_model_client("openrouter")
class OpenRouterClient(BaseModelClient):
    """OpenAI-compatible chat-completions over httpx (OpenRouter by default)."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key or settings.OPENROUTER_API_KEY
        self.base_url = (base_url or settings.LLM_BASE_URL).rstrip("/")
        self.model = model or settings.LLM_MODEL
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS
        self.temperature = settings.LLM_TEMPERATURE if temperature is None else temperature
        self.timeout = timeout or settings.LLM_TIMEOUT
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "HTTP-Referer": settings.LLM_APP_URL,
            "X-Title": settings.LLM_APP_TITLE,
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def build_payload(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [message.to_openai() for message in messages],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        if tools:
            payload["tools"] = list(tools)
            payload["tool_choice"] = "auto"
        return payload

    def send(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> ModelResponse:
        payload = self.build_payload(messages, tools)
        logger.info("Sending request to LLM: %s (%d messages)", self.model, len(messages))

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.post(
                    f"{self.base_url}/chat/completions", json=payload, headers=self._headers()
                )
        except httpx.HTTPError as e:
            logger.error("LLM request error: %s", str(e))
            raise ModelClientError(f"LLM request failed: {e}") from e

        if resp.is_error:
            detail = _error_detail(resp)
            logger.error("LLM request failed (%d): %s", resp.status_code, detail)
            raise ModelClientError(f"LLM request failed: {detail}")

        try:
            body = resp.json()
        except json.JSONDecodeError as e:
            raise ModelClientError(f"Malformed LLM response: {e}") from e

        logger.debug("LLM response: %s", body)
        return parse_chat_completion(body)


def _error_detail(resp: httpx.Response) -> str:
    """Pull the upstream ``error.message`` out of a failed reply, if there is one."""
    try:
        body = resp.json()
    except json.JSONDecodeError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return f"HTTP {resp.status_code} {resp.reason_phrase}".strip()


@register_model_client("openai")
class OpenAIModelClient(BaseModelClient):
    """OpenAI chat-completions through the official SDK."""

    def __init__(self, api_key: str | None = None, model: str | None = None, client: Any = None):
        self.api_key = api_key or settings.OPENAI_API_KEY
        self.model = model or settings.OPENAI_MODEL
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            import openai  # pylint: disable=import-outside-toplevel

            self._client = openai.OpenAI(api_key=self.api_key)
        return self._client

    def send(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> ModelResponse:
        import openai  # pylint: disable=import-outside-toplevel

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [message.to_openai() for message in messages],
            "max_tokens": settings.LLM_MAX_TOKENS,
            "temperature": settings.LLM_TEMPERATURE,
        }
        if tools:
            kwargs["tools"] = list(tools)
            kwargs["tool_choice"] = "auto"

        try:
            resp = self._get_client().chat.completions.create(**kwargs)
        except openai.OpenAIError as e:
            logger.error("OpenAI request error: %s", str(e))
            raise ModelClientError(f"LLM request failed: {e}") from e

        logger.debug("OpenAI response: %s", resp)
        return parse_chat_completion(resp.model_dump())


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------
def to_anthropic_tools(tools: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Convert ``{"type": "function", ...}`` specs into Anthropic tool definitions."""
    out = []
    for spec in tools:
        function = spec["function"]
        out.append(
            {
                "name": function["name"],
                "description": function.get("description", ""),
                "input_schema": function.get("parameters", {"type": "object"}),
            }
        )
    return out


def _decoded_arguments(call: ToolCallRequest) -> Any:
    if isinstance(call.arguments, str):
        try:
            return json.loads(call.arguments or "{}")
        except json.JSONDecodeError:
            return {"raw": call.arguments}
    return call.arguments if call.arguments is not None else {}


def _tool_call_text(call: ToolCallRequest) -> str:
    return f"[called {call.name} ({call.id}) with {call.arguments_json()}]"


def to_anthropic_messages(
    messages: Sequence[Message], tool_blocks: bool = True
) -> Tuple[str, List[Dict[str, Any]]]:
    """
    Split *messages* into Anthropic's ``system`` string and ``messages`` list.

    Assistant tool calls become ``tool_use`` blocks; consecutive tool results are folded into a
    single user message of ``tool_result`` blocks, as the Messages API requires.

    The API refuses ``tool_use``/``tool_result`` blocks in a request that declares no tools, so
    with *tool_blocks* off earlier calls and their results are rendered as plain text instead.
    """
    system_parts: List[str] = []
    out: List[Dict[str, Any]] = []

    for message in messages:
        if message.role is Role.SYSTEM:
            system_parts.append(message.content or "")
        elif message.role is Role.TOOL:
            if tool_blocks:
                block = {
                    "type": "tool_result",
                    "tool_use_id": message.tool_call_id,
                    "content": message.content or "",
                }
            else:
                block = {
                    "type": "text",
                    "text": f"[result of {message.tool_call_id}] {message.content or ''}",
                }
            last = out[-1] if out else None
            # Only folded tool results carry list content on the user side
            if last is not None and last["role"] == "user" and isinstance(last["content"], list):
                last["content"].append(block)
            else:
                out.append({"role": "user", "content": [block]})
        elif message.role is Role.ASSISTANT and message.tool_calls:
            if not tool_blocks:
                lines = [message.content] if message.content else []
                lines.extend(_tool_call_text(call) for call in message.tool_calls)
                out.append({"role": "assistant", "content": "\n".join(lines)})
                continue
            blocks: List[Dict[str, Any]] = []
            if message.content:
                blocks.append({"type": "text", "text": message.content})
            for call in message.tool_calls:
                blocks.append(
                    {
                        "type": "tool_use",
                        "id": call.id,
                        "name": call.name,
                        "input": _decoded_arguments(call),
                    }
                )
            out.append({"role": "assistant", "content": blocks})
        else:
            out.append({"role": message.role.value, "content": message.content or ""})

    return "\n\n".join(part for part in system_parts if part), out


@register_model_client("anthropic")
class AnthropicModelClient(BaseModelClient):
    """Anthropic Claude through the Messages API."""

    def __init__(self, api_key: str | None = None, model: str | None = None, client: Any = None):
        self.api_key = api_key or settings.ANTHROPIC_API_KEY
        self.model = model or settings.ANTHROPIC_MODEL
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            import anthropic  # pylint: disable=import-outside-toplevel

            self._client = anthropic.Anthropic(api_key=self.api_key)
        return self._client

    def send(
        self,
        messages: Sequence[Message],
        tools: Optional[Sequence[Mapping[str, Any]]] = None,
    ) -> ModelResponse:
        import anthropic  # pylint: disable=import-outside-toplevel

        system_prompt, converted = to_anthropic_messages(messages, tool_blocks=bool(tools))
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": settings.LLM_MAX_TOKENS,
            "temperature": settings.LLM_TEMPERATURE,
            "messages": converted,
        }
        if system_prompt:
            kwargs["system"] = system_prompt
        if tools:
            kwargs["tools"] = to_anthropic_tools(tools)
            kwargs["tool_choice"] = {"type": "auto"}

        try:
            response = self._get_client().messages.create(**kwargs)
        except anthropic.APIError as e:
            logger.error("Anthropic request error: %s", str(e))
            raise ModelClientError(f"LLM request failed: {e}") from e

        logger.debug("Anthropic response: %s", response)
        texts: List[str] = []
        calls: List[ToolCallRequest] = []
        for block in response.content:
            if block.type == "text":
                texts.append(block.text)
            elif block.type == "tool_use":
                calls.append(ToolCallRequest(id=block.id, name=block.name, arguments=block.input))
        return ModelResponse(content="".join(texts) or None, tool_calls=calls)
