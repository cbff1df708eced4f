"""Token estimation — 1 token ≈ 4 characters."""

from __future__ import annotations

import json
from typing import Any, Iterable

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Approximate token cost of *text*: ``ceil(len(text) / 4)``."""
    if not text:
        return 0
    return -(-len(text) // CHARS_PER_TOKEN)


def count_tokens(messages: Iterable[Any]) -> int:
    """Sum the estimated tokens of messages, dicts or plain strings.

    Dicts without a ``content`` value are counted by their JSON form.
    """
    total = 0
    for msg in messages:
        if isinstance(msg, str):
            content = msg
        elif isinstance(msg, dict):
            content = msg.get("content") or json.dumps(msg, ensure_ascii=False)
        else:
            content = getattr(msg, "content", "") or ""
        total += estimate_tokens(content)
    return total
