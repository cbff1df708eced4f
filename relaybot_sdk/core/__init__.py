"""核心 — 配置、会话中介、回复生成与 Telegram 运行器。"""

from relaybot_sdk.core.config import RelayConfig
from relaybot_sdk.core.responder import Responder
from relaybot_sdk.core.relay import ChatRelay
from relaybot_sdk.core.agent import RelayBot

__all__ = ["RelayConfig", "Responder", "ChatRelay", "RelayBot"]
