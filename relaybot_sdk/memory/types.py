"""
对话消息数据类型定义。
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
ROLE_SYSTEM = "system"

ROLES = (ROLE_USER, ROLE_ASSISTANT, ROLE_SYSTEM)


@dataclass
class Message:
    """A single conversation message.

    ``timestamp`` is epoch seconds and defaults to now when left unset.
    ``truncated`` is set on working copies produced by the history
    optimizer; ``is_summary`` marks the synthetic system entry produced by
    summarization.
    """

    role: str  # "user", "assistant", "system"
    content: str
    timestamp: Optional[float] = None
    truncated: bool = False
    is_summary: bool = False

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"unknown message role: {self.role!r}")
        if self.timestamp is None:
            self.timestamp = time.time()

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }
        if self.truncated:
            d["truncated"] = True
        if self.is_summary:
            d["is_summary"] = True
        return d

    def to_chat(self) -> Dict[str, str]:
        """Return the ``{"role", "content"}`` pair sent to the model."""
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Message":
        ts = d.get("timestamp")
        return cls(
            role=d.get("role", ROLE_USER),
            content=d.get("content", ""),
            timestamp=float(ts) if ts is not None else None,
            truncated=bool(d.get("truncated", False)),
            is_summary=bool(d.get("is_summary", False)),
        )
