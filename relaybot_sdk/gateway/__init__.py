"""消息网关 — 收发类型、网关接口与 Telegram 实现。"""

from relaybot_sdk.gateway.types import (
    KIND_IMAGE,
    KIND_OTHER,
    KIND_TEXT,
    KIND_VOICE,
    InboundMessage,
    OutboundResponse,
    describe_content,
)
from relaybot_sdk.gateway.base import MessageGateway
from relaybot_sdk.gateway.telegram import TelegramGateway, inbound_from_update, split_text

__all__ = [
    "InboundMessage",
    "OutboundResponse",
    "describe_content",
    "KIND_TEXT",
    "KIND_VOICE",
    "KIND_IMAGE",
    "KIND_OTHER",
    "MessageGateway",
    "TelegramGateway",
    "inbound_from_update",
    "split_text",
]
