"""
ResponseCache — 按 (用户, 归一化问题) 指纹缓存最近的模型回复。

- get: 惰性过期（now - stored_at > ttl 即删除并返回 None）
- put: 已满时先淘汰最早插入的一条（FIFO，近似 LRU，不看访问时间），再写入
- 可选的后台定时清扫，与 get 共用同一条过期路径

指纹按前缀截断，前缀相同的长问题会命中同一条缓存。

Usage::

    cache = ResponseCache(ttl=300, max_size=1000)
    key = make_fingerprint(user_id, text)
    cached = cache.get(key)
    if cached is None:
        cache.put(key, await call_model())

    await cache.start_sweeper(interval=60)
    await cache.stop_sweeper()
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger("relaybot_sdk.cache")

DEFAULT_PREFIX_LEN = 100


def make_fingerprint(user_id: str, text: str, prefix_len: int = DEFAULT_PREFIX_LEN) -> str:
    """Cache key: ``"{user_id}:{lowercased, stripped text prefix}"``."""
    normalized = text.lower().strip()
    return f"{user_id}:{normalized[:prefix_len]}"


@dataclass
class CacheEntry:
    key: str
    response: Any
    stored_at: float


class ResponseCache:
    """In-memory TTL store with FIFO eviction.

    Parameters:
        ttl: Seconds an entry stays retrievable (default 300).
        max_size: Maximum live entries (default 1000).
        clock: Monotonic time source; injectable for tests.
    """

    def __init__(
        self,
        ttl: float = 300.0,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        # dict 保持插入顺序，首个 key 即最早插入
        self._entries: Dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._sweeper: Optional[asyncio.Task] = None

    # ─── 读写 ───

    def get(self, key: str) -> Optional[Any]:
        """Return the cached response, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None or self._expire_if_stale(entry, self._clock()):
            self._misses += 1
            return None
        self._hits += 1
        return entry.response

    def put(self, key: str, response: Any) -> None:
        """Insert or overwrite *key*.

        When the cache is full the oldest-inserted entry is evicted first,
        even if *key* itself is already present.
        """
        if len(self._entries) >= self.max_size:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            self._evictions += 1
            logger.debug("Cache full, evicted oldest entry %r", oldest)
        self._entries[key] = CacheEntry(key=key, response=response, stored_at=self._clock())

    def purge_expired(self) -> int:
        """Delete every expired entry; returns how many were removed."""
        now = self._clock()
        removed = 0
        for entry in list(self._entries.values()):
            if self._expire_if_stale(entry, now):
                removed += 1
        if removed:
            logger.debug("Cleaned %d expired cache entries", removed)
        return removed

    def invalidate_user(self, user_id: str) -> int:
        """Drop every entry fingerprinted for *user_id*."""
        prefix = f"{user_id}:"
        stale = [k for k in self._entries if k.startswith(prefix)]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "ttl": self.ttl,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
            "hit_rate": round(self._hits / lookups, 3) if lookups else 0.0,
        }

    def _expire_if_stale(self, entry: CacheEntry, now: float) -> bool:
        if now - entry.stored_at > self.ttl:
            self._entries.pop(entry.key, None)
            return True
        return False

    # ─── 定时清扫 ───

    async def start_sweeper(self, interval: float = 60.0) -> None:
        """Start the periodic expiry sweep (idempotent)."""
        if self._sweeper is not None and not self._sweeper.done():
            return
        self._sweeper = asyncio.create_task(self._sweep_loop(interval))
        logger.info("Cache sweeper started (interval=%ss)", interval)

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
        logger.info("Cache sweeper stopped")

    @property
    def sweeping(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    async def _sweep_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                self.purge_expired()
            except Exception as e:
                logger.error("Cache sweep error: %s", e, exc_info=True)
