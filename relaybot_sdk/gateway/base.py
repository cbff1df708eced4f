"""MessageGateway — 投递回复 / 下载媒体的网关接口。"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from relaybot_sdk.gateway.types import InboundMessage, OutboundResponse


@runtime_checkable
class MessageGateway(Protocol):
    """Messaging platform seen from the relay.

    ``send`` failures are handled (logged) by the caller; implementations
    may simply raise.
    """

    async def send(self, recipient_id: str, response: OutboundResponse) -> None: ...

    async def send_typing(self, recipient_id: str) -> None: ...

    async def download_audio(self, message: InboundMessage) -> Optional[bytes]: ...
