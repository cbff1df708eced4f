"""
RelayBot SDK — 消息网关与 LLM 之间的会话中介。

基于 python-telegram-bot，负责会话状态与 token 预算：
按用户的对话历史、历史裁剪 / 去重 / 摘要、prompt 压缩、
响应缓存、连发消息合批。

Quick Start:
    from relaybot_sdk import RelayBot, RelayConfig

    async def my_llm(messages, tools=None, **options):
        response = await client.chat.completions.create(
            messages=messages, tools=tools, **options,
        )
        return response.choices[0].message

    bot = RelayBot(RelayConfig.from_env(), complete_fn=my_llm)
    bot.run()
"""

__version__ = "0.1.0"

from relaybot_sdk.errors import (
    AuthorizationError,
    RelayError,
    UpstreamError,
)
from relaybot_sdk.core.config import RelayConfig
from relaybot_sdk.core.relay import ChatRelay
from relaybot_sdk.core.responder import Responder
from relaybot_sdk.core.agent import RelayBot
from relaybot_sdk.memory.types import Message
from relaybot_sdk.memory.conversation import ConversationStore
from relaybot_sdk.context.optimizer import Fallback, HistoryOptimizer, Summarized
from relaybot_sdk.context.prompt import CompressionResult, PromptCompressor
from relaybot_sdk.context.tokens import estimate_tokens
from relaybot_sdk.cache.response_cache import ResponseCache, make_fingerprint
from relaybot_sdk.batching.batcher import MessageBatcher
from relaybot_sdk.gateway.types import InboundMessage, OutboundResponse
from relaybot_sdk.gateway.telegram import TelegramGateway
from relaybot_sdk.llm.client import CompletionResult, ModelClient
from relaybot_sdk.tools.registry import ToolDef, ToolRegistry
from relaybot_sdk.voice.processor import VoiceProcessor
from relaybot_sdk.utils.logger import setup_logging

__all__ = [
    "RelayBot",
    "RelayConfig",
    "ChatRelay",
    "Responder",
    "Message",
    "ConversationStore",
    "HistoryOptimizer",
    "Summarized",
    "Fallback",
    "PromptCompressor",
    "CompressionResult",
    "estimate_tokens",
    "ResponseCache",
    "make_fingerprint",
    "MessageBatcher",
    "InboundMessage",
    "OutboundResponse",
    "TelegramGateway",
    "ModelClient",
    "CompletionResult",
    "ToolRegistry",
    "ToolDef",
    "VoiceProcessor",
    "RelayError",
    "UpstreamError",
    "AuthorizationError",
    "setup_logging",
    "__version__",
]
