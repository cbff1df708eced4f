"""LLM 调用 — 重试、流式、function calling。"""

from relaybot_sdk.llm.client import (
    EMPTY_REPLY,
    ChunkSink,
    CompleteFn,
    CompletionResult,
    ModelClient,
    StreamFn,
)
from relaybot_sdk.llm.retry import retry_with_backoff

__all__ = [
    "ModelClient",
    "CompletionResult",
    "CompleteFn",
    "StreamFn",
    "ChunkSink",
    "EMPTY_REPLY",
    "retry_with_backoff",
]
