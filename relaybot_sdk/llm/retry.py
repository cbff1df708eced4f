"""指数退避重试 — 鉴权失败（401/403）不重试，直接抛出。"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from relaybot_sdk.errors import is_authorization_error

logger = logging.getLogger("relaybot_sdk.llm")

T = TypeVar("T")


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """Await ``fn()`` up to *max_attempts* times.

    Waits ``initial_delay * 2**n`` seconds after the n-th failure. The last
    error is re-raised once attempts run out.
    """
    attempts = max(1, max_attempts)
    attempt = 0

    while True:
        try:
            return await fn()
        except Exception as e:
            if is_authorization_error(e) or attempt >= attempts - 1:
                raise
            delay = initial_delay * (2 ** attempt)
            attempt += 1
            logger.warning(
                "Retry %d/%d after %.2fs due to: %s", attempt, attempts, delay, e
            )
            await sleep(delay)
