"""
Telegram 网关 — 基于 python-telegram-bot 的 MessageGateway 实现。

- inbound_from_update(): telegram.Update → InboundMessage
- TelegramGateway: 发送文本 / 语音、typing 状态、下载语音文件
"""

from __future__ import annotations

import logging
from typing import List, Optional

from telegram import Bot, Update
from telegram.constants import ChatAction, MessageLimit

from relaybot_sdk.gateway.types import (
    KIND_IMAGE,
    KIND_OTHER,
    KIND_TEXT,
    KIND_VOICE,
    InboundMessage,
    OutboundResponse,
)

logger = logging.getLogger("relaybot_sdk.gateway")


def inbound_from_update(update: Update) -> Optional[InboundMessage]:
    """Convert a Telegram update; None for updates the relay ignores.

    Messages from bots (including our own) are ignored.
    """
    msg = update.effective_message
    chat = update.effective_chat
    if msg is None or chat is None:
        return None
    if msg.from_user is not None and msg.from_user.is_bot:
        return None

    base = dict(user_id=str(chat.id), message_id=msg.message_id, raw=update)

    if msg.text:
        return InboundMessage(kind=KIND_TEXT, text=msg.text, **base)

    voice = msg.voice or msg.audio
    if voice is not None:
        return InboundMessage(kind=KIND_VOICE, file_id=voice.file_id, **base)

    if msg.photo:
        return InboundMessage(
            kind=KIND_IMAGE,
            caption=msg.caption or "",
            file_id=msg.photo[-1].file_id,
            **base,
        )

    return InboundMessage(kind=KIND_OTHER, caption=msg.caption or "", **base)


def split_text(text: str, limit: int = MessageLimit.MAX_TEXT_LENGTH) -> List[str]:
    """Split *text* into Telegram-sized pieces, preferring line breaks."""
    if len(text) <= limit:
        return [text]
    parts: List[str] = []
    rest = text
    while len(rest) > limit:
        cut = rest.rfind("\n", 0, limit)
        if cut <= 0:
            cut = limit
        parts.append(rest[:cut])
        rest = rest[cut:].lstrip("\n")
    if rest:
        parts.append(rest)
    return parts


class TelegramGateway:
    """MessageGateway backed by a ``telegram.Bot``."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    @property
    def bot(self) -> Bot:
        return self._bot

    async def send(self, recipient_id: str, response: OutboundResponse) -> None:
        if response.type == "audio":
            await self._bot.send_voice(chat_id=recipient_id, voice=response.content)
            return
        for part in split_text(str(response.content)):
            await self._bot.send_message(chat_id=recipient_id, text=part)

    async def send_typing(self, recipient_id: str) -> None:
        await self._bot.send_chat_action(chat_id=recipient_id, action=ChatAction.TYPING)

    async def download_audio(self, message: InboundMessage) -> Optional[bytes]:
        if message.audio is not None:
            return message.audio
        if not message.file_id:
            return None
        tg_file = await self._bot.get_file(message.file_id)
        data = await tg_file.download_as_bytearray()
        return bytes(data)
