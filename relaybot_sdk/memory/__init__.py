"""
对话状态 — 消息类型 + 按用户隔离的内存历史。
"""

from relaybot_sdk.memory.types import (
    Message,
    ROLES,
    ROLE_ASSISTANT,
    ROLE_SYSTEM,
    ROLE_USER,
)
from relaybot_sdk.memory.conversation import ConversationStore

__all__ = [
    "Message",
    "ROLES",
    "ROLE_USER",
    "ROLE_ASSISTANT",
    "ROLE_SYSTEM",
    "ConversationStore",
]
