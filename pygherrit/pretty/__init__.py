"""Pretty formatting utilities for CLI output."""

import json
import shutil
import sys
from typing import IO, Optional

def get_term_width() -> int:
    """Get terminal width, default to 80 if can't detect."""
    try:
        return shutil.get_terminal_size().columns
    except (OSError, ValueError):
        return 80


def header(text: str, use_emoji: bool = True) -> str:
    """Create a boxed header with optional emoji."""
    width = max(get_term_width(), len(text) + 8)

    h_line = "─" * (width - 2)
    v_line = "│"
    emoji = "🎯 " if use_emoji else ""

    result = [
        f"┌{h_line}┐",
        f"{v_line} {emoji}{text}{' ' * (width - len(text) - len(emoji) - 3)}{v_line}",
        f"└{h_line}┘"
    ]

    return "\n".join(result)


def state_label(state: object) -> str:
    """Short human label for a pull request state."""
    return {
        None: "⏳ no PR yet",
        "OPEN": "🟢 open",
        "CLOSED": "🔴 closed",
        "MERGED": "✅ merged",
    }.get(state, str(state or ""))


def pretty_json(data: object) -> str:
    """Format JSON data for display."""
    return json.dumps(data, indent=2, ensure_ascii=False)


def print_json(data: object, file: Optional[IO[str]] = None) -> None:
    """Print JSON data to file (default stdout)."""
    if file is None:
        file = sys.stdout
    print(pretty_json(data), file=file)


def print_header(text: str, use_emoji: bool = True, file: Optional[IO[str]] = None) -> None:
    """Print a header to file (default stdout)."""
    if file is None:
        file = sys.stdout
    print(header(text, use_emoji), file=file)
