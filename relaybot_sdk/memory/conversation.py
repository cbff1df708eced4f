"""
ConversationStore — 按用户隔离的内存对话历史。

每个用户一条有序消息列表：首次消息时创建，单条消息超过 session_timeout
后过期，整条历史仅在显式 clear 时删除。其他组件只拿到副本。
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from relaybot_sdk.memory.types import Message

logger = logging.getLogger("relaybot_sdk.memory")


class ConversationStore:
    """Owns the per-user message lists and their lifecycle.

    Parameters:
        session_timeout: Seconds after which a single message expires
            (default 3600).
        max_history: Maximum messages retained per user; oldest are dropped
            first (default 50).
        clock: Returns the current epoch time; injectable for tests.
    """

    def __init__(
        self,
        session_timeout: float = 3600.0,
        max_history: int = 50,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._session_timeout = session_timeout
        self._max_history = max_history
        self._clock = clock
        self._histories: Dict[str, List[Message]] = {}

    # ─── 写入 ───

    def append(
        self,
        user_id: str,
        role: str,
        content: str,
        timestamp: Optional[float] = None,
    ) -> Message:
        """Append a message to *user_id*'s history, creating it if needed."""
        msg = Message(
            role=role,
            content=content,
            timestamp=timestamp if timestamp is not None else self._clock(),
        )
        history = self._histories.setdefault(user_id, [])
        history.append(msg)
        if len(history) > self._max_history:
            del history[: len(history) - self._max_history]
        return msg

    # ─── 读取 ───

    def get_history(self, user_id: str) -> List[Message]:
        """Return a copy of the live (non-expired) history, oldest first."""
        history = self._histories.get(user_id)
        if history is None:
            return []
        self._expire(user_id, history)
        return list(history)

    def has(self, user_id: str) -> bool:
        return user_id in self._histories

    @property
    def conversation_count(self) -> int:
        return len(self._histories)

    @property
    def message_count(self) -> int:
        return sum(len(h) for h in self._histories.values())

    def recent_messages(self, limit: int = 20) -> List[Dict[str, Any]]:
        """Newest messages across all users (each dict carries ``from``)."""
        items: List[Dict[str, Any]] = []
        for user_id, history in self._histories.items():
            for msg in history:
                entry = msg.to_dict()
                entry["from"] = user_id
                items.append(entry)
        items.sort(key=lambda m: m["timestamp"], reverse=True)
        return items[:limit]

    # ─── 清理 ───

    def clear(self, user_id: Optional[str] = None) -> None:
        """Drop one user's history, or every history when *user_id* is None."""
        if user_id is None:
            self._histories.clear()
            logger.info("All conversation histories cleared")
        else:
            self._histories.pop(user_id, None)
            logger.info("Conversation history cleared | user=%s", user_id)

    def _expire(self, user_id: str, history: List[Message]) -> None:
        cutoff = self._clock() - self._session_timeout
        live = [m for m in history if m.timestamp > cutoff]
        if len(live) != len(history):
            logger.debug(
                "Expired %d messages | user=%s", len(history) - len(live), user_id
            )
            history[:] = live
