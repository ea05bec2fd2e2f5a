"""CLI client for the dbagent API."""

from __future__ import annotations

import logging
import time
from typing import (
    Any,
    Dict,
    Tuple,
    cast,
)

import httpx

from dbagent.common import (
    AnsiColors,
    bullet_list,
    colored_print,
)
from dbagent.config import settings

logger = logging.getLogger(__name__)

HELP_TEXT = """\
Commands:
  /tools   list the tools the agent can use
  /history show how many messages this conversation holds
  /clear   forget this conversation
  exit     leave the shell (Ctrl+C works too)"""


# ---------------------------------------------------------------------------
# CLI Client
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """Read one line from stdin; the flag is False once stdin is closed or interrupted."""
    try:
        return input().strip(), True
    except (EOFError, KeyboardInterrupt):
        return "", False


def call_api(
    method: str,
    endpoint: str,
    data: Dict[str, Any] | None = None,
    params: Dict[str, Any] | None = None,
    max_retries: int = 5,
) -> Dict[str, Any]:
    """Send a request to the API and return the JSON body, retrying while the server starts."""
    api_url = f"http://localhost:{settings.API_PORT}{endpoint}"

    for attempt in range(max_retries):
        try:
            with httpx.Client(timeout=settings.LLM_TIMEOUT * 2) as client:
                response = client.request(method, api_url, json=data, params=params)
        except httpx.ConnectError as e:
            if attempt < max_retries - 1:
                delay = 0.5 * (2**attempt)
                logger.info(
                    "Waiting %.1fs for the API at %s (attempt %d/%d)",
                    delay,
                    api_url,
                    attempt + 1,
                    max_retries,
                )
                time.sleep(delay)
                continue
            logger.error("API connection error: %s", str(e))
            return {"success": False, "response": f"Error connecting to API: {e}"}
        except httpx.HTTPError as e:
            logger.error("API request error: %s", str(e))
            return {"success": False, "response": f"Error connecting to API: {e}"}

        if response.is_error:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            return {"success": False, "response": f"API error: {detail}"}
        return cast(Dict[str, Any], response.json())

    return {"success": False, "response": f"Failed to connect to API after {max_retries} attempts"}


def _show_reply(reply: Dict[str, Any]) -> None:
    for name, result in zip(reply.get("tools_used") or [], reply.get("tool_results") or []):
        status = "ok" if result.get("success") else f"failed: {result.get('error')}"
        colored_print(f"[{name}] {result.get('operation')} {status}", AnsiColors.GREY)
    color = AnsiColors.YELLOW if reply.get("success", False) else AnsiColors.RED
    colored_print(reply.get("response", "No response from API"), color)


def _run_command(command: str, conversation_id: str) -> None:
    if command == "/tools":
        tools = call_api("GET", "/tools").get("tools", {})
        colored_print(
            bullet_list(f"{name}: {info['description']}" for name, info in tools.items()),
            AnsiColors.GREEN,
        )
    elif command == "/history":
        body = call_api("GET", "/history", params={"conversation_id": conversation_id})
        colored_print(f"{body.get('count', 0)} message(s) in this conversation", AnsiColors.GREEN)
    elif command == "/clear":
        call_api("POST", "/clear", data={"conversation_id": conversation_id})
        colored_print("Conversation cleared.", AnsiColors.GREEN)
    else:
        colored_print(HELP_TEXT, AnsiColors.BLUE)


def run_cli(conversation_id: str = "cli") -> None:
    """Run the CLI client that communicates with the API."""
    colored_print(
        "\nMongoDB agent shell - type /help for commands, 'exit' to quit", AnsiColors.GREEN
    )
    while True:
        colored_print("\nYou: ", AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break
        if not user_msg:
            continue
        if user_msg.lower() in {"exit", "quit"}:
            break
        if user_msg.startswith("/"):
            _run_command(user_msg.lower(), conversation_id)
            continue

        reply = call_api(
            "POST", "/chat", data={"message": user_msg, "conversation_id": conversation_id}
        )
        _show_reply(reply)


if __name__ == "__main__":
    run_cli()
