"""Terminal helpers shared by the CLI and the launchers."""

from enum import Enum
from typing import (
    Any,
    Iterable,
)


class AnsiColors(Enum):
    """Escape codes for the handful of colours the shell uses."""

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[33m"
    BLUE = "\033[94m"
    GREY = "\033[90m"


_RESET = "\033[0m"


def paint(text: str, color: AnsiColors) -> str:
    """Wrap *text* in the escape codes for *color*."""
    return f"{color.value}{text}{_RESET}"


def colored_print(text: str, color: AnsiColors, *args: Any, **kwargs: Any) -> None:
    """Print *text* in *color*; extra arguments go straight to :func:`print`."""
    print(paint(text, color), *args, **kwargs)


def bullet_list(items: Iterable[str], indent: int = 2) -> str:
    """Render *items* as a dashed list, one per line."""
    pad = " " * indent
    return "\n".join(f"{pad}- {item}" for item in items)
