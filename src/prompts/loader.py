from __future__ import annotations

from functools import lru_cache
from pathlib import Path

SYSTEM_MESSAGE_FILE = "system_message.txt"


@lru_cache(maxsize=8)
def load_prompt(filename: str) -> str:
    """Load a prompt text file shipped with the codebase."""

    prompt_dir = Path(__file__).resolve().parent
    path = prompt_dir / filename
    if not path.exists():
        raise RuntimeError(f"Prompt file not found: {filename}")
    return path.read_text(encoding="utf-8").strip() + "\n"


def system_message() -> str:
    return load_prompt(SYSTEM_MESSAGE_FILE)
