"""响应缓存 — 指纹 + TTL + FIFO 淘汰。"""

from relaybot_sdk.cache.response_cache import (
    CacheEntry,
    ResponseCache,
    make_fingerprint,
)

__all__ = ["CacheEntry", "ResponseCache", "make_fingerprint"]
