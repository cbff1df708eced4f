"""
消息重要性评分 — 决定旧消息在 token 预算内的保留优先级。

用户消息 > 提问 > 短消息 > 长篇回复；越新越重要。
"""

from __future__ import annotations

import time
from typing import List, Optional, Sequence

from relaybot_sdk.memory.types import ROLE_USER, Message

SHORT_MESSAGE_CHARS = 100
LONG_MESSAGE_CHARS = 500
FRESH_SECONDS = 5 * 60
RECENT_SECONDS = 30 * 60


def score_message(message: Message, now: Optional[float] = None) -> float:
    """Retention score of *message*; higher means keep it."""
    if now is None:
        now = time.time()

    score = 0.0
    if message.role == ROLE_USER:
        score += 10
    if "?" in message.content:
        score += 5

    length = len(message.content)
    if length < SHORT_MESSAGE_CHARS:
        score += 3
    elif length > LONG_MESSAGE_CHARS:
        score -= 2

    age = now - message.timestamp
    if age < FRESH_SECONDS:
        score += 5
    elif age < RECENT_SECONDS:
        score += 2

    return score


def rank_messages(
    messages: Sequence[Message], now: Optional[float] = None
) -> List[Message]:
    """Sort by descending score; ties keep their original order."""
    if now is None:
        now = time.time()
    return sorted(messages, key=lambda m: score_message(m, now), reverse=True)
