"""
网关中立的收发消息类型。

InboundMessage 屏蔽具体 IM 平台的数据格式；OutboundResponse 是交给
MessageGateway.send 的回复。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

KIND_TEXT = "text"
KIND_VOICE = "voice"
KIND_IMAGE = "image"
KIND_OTHER = "other"


@dataclass
class InboundMessage:
    """A message received from the gateway.

    Attributes:
        user_id: Conversation / chat identifier replies are sent to.
        kind: ``"text"``, ``"voice"``, ``"image"`` or ``"other"``.
        text: Text body (text messages and merged batches).
        caption: Image caption, if any.
        audio: Raw audio bytes, when already downloaded.
        file_id: Gateway file handle for lazy media download.
        message_id: Gateway message id.
        batch_size: Number of raw messages merged into this one.
        raw: The original gateway object (e.g. ``telegram.Update``).
    """

    user_id: str
    kind: str = KIND_TEXT
    text: str = ""
    caption: str = ""
    audio: Optional[bytes] = None
    file_id: str = ""
    message_id: Optional[int] = None
    batch_size: int = 1
    raw: Any = None


def describe_content(message: InboundMessage) -> str:
    """Readable text of a raw message, used when merging a batch."""
    if message.kind == KIND_TEXT and message.text:
        return message.text
    if message.kind == KIND_VOICE:
        return "[Voice message]"
    if message.kind == KIND_IMAGE:
        return message.caption or "[Image]"
    return message.text or "[Message]"


@dataclass
class OutboundResponse:
    """A reply for the gateway.

    Attributes:
        type: ``"text"`` or ``"audio"``.
        content: Text, or audio bytes for ``"audio"``.
        text: Text form of the reply (same as content for text replies).
    """

    type: str
    content: Union[str, bytes]
    text: str = ""

    def __post_init__(self) -> None:
        if not self.text and isinstance(self.content, str):
            self.text = self.content

    @classmethod
    def as_text(cls, text: str) -> "OutboundResponse":
        return cls(type="text", content=text, text=text)

    @classmethod
    def as_audio(cls, audio: bytes, text: str = "") -> "OutboundResponse":
        return cls(type="audio", content=audio, text=text)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"type": self.type, "text": self.text}
        if self.type == "text":
            d["content"] = self.content
        else:
            d["content_bytes"] = len(self.content)
        return d
