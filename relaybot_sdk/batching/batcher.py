"""
MessageBatcher — 把同一用户短时间内的连发消息合并成一次处理。

每个用户的状态机: NoBatch ⇄ Accumulating
    - 新消息: 创建批次，启动 batch_window 防抖计时
    - 再来消息: 追加并重置计时（取消后重新调度）
    - 达到 max_batch_size: 立即 flush，不等计时
    - 计时到期: flush 已累积的消息

同一 user_id 任意时刻最多一个批次；批次在调用 process_fn 之前就从表中移除。

Usage::

    async def process(user_id, message):
        ...

    batcher = MessageBatcher(process, batch_window=2.0, max_batch_size=5)
    await batcher.add_message("u1", InboundMessage(user_id="u1", text="hi"))
    ...
    await batcher.flush_all()
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Set

from relaybot_sdk.gateway.types import KIND_TEXT, InboundMessage, describe_content

logger = logging.getLogger("relaybot_sdk.batching")

# process_fn: async (user_id, merged_message) -> None
ProcessFn = Callable[[str, InboundMessage], Awaitable[None]]


@dataclass
class Batch:
    user_id: str
    messages: List[InboundMessage] = field(default_factory=list)
    timer: Optional[asyncio.TimerHandle] = None

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


def merge_messages(messages: List[InboundMessage]) -> InboundMessage:
    """Combine a batch into one message.

    A single message passes through unchanged. Several become a copy of the
    first one whose text is the numbered list of every message's content.
    """
    if len(messages) == 1:
        return messages[0]
    text = "\n".join(
        f"{idx}. {describe_content(msg)}" for idx, msg in enumerate(messages, 1)
    )
    return dataclasses.replace(
        messages[0],
        kind=KIND_TEXT,
        text=text,
        caption="",
        audio=None,
        file_id="",
        batch_size=len(messages),
    )


class MessageBatcher:
    """Coalesces rapid-fire messages per user within a debounce window.

    Parameters:
        process_fn: Called with ``(user_id, merged_message)`` on flush.
        batch_window: Quiet period in seconds after the last message
            (default 2.0).
        max_batch_size: Flush immediately at this many messages (default 5).
    """

    def __init__(
        self,
        process_fn: ProcessFn,
        batch_window: float = 2.0,
        max_batch_size: int = 5,
    ) -> None:
        if max_batch_size < 1:
            raise ValueError("max_batch_size must be >= 1")
        self.process_fn = process_fn
        self.batch_window = batch_window
        self.max_batch_size = max_batch_size
        self._batches: Dict[str, Batch] = {}
        # 由计时器触发、尚在运行的 flush
        self._inflight: Set[asyncio.Task] = set()

    # ─── 入队 ───

    async def add_message(self, user_id: str, message: InboundMessage) -> None:
        """Queue *message*; flushes right away when the batch is full."""
        batch = self._batches.get(user_id)
        if batch is None:
            batch = Batch(user_id=user_id)
            self._batches[user_id] = batch

        batch.messages.append(message)
        batch.cancel_timer()

        if len(batch.messages) >= self.max_batch_size:
            await self.flush(user_id)
            return

        loop = asyncio.get_running_loop()
        batch.timer = loop.call_later(self.batch_window, self._on_timer, user_id)

    def _on_timer(self, user_id: str) -> None:
        batch = self._batches.get(user_id)
        if batch is None:
            return
        batch.timer = None
        task = asyncio.ensure_future(self.flush(user_id))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    # ─── flush ───

    async def flush(self, user_id: str) -> bool:
        """Process *user_id*'s pending batch now. Returns False if none."""
        batch = self._batches.pop(user_id, None)
        if batch is None:
            return False
        batch.cancel_timer()
        if not batch.messages:
            return False

        logger.info(
            "Processing batch of %d messages | user=%s", len(batch.messages), user_id
        )
        merged = merge_messages(batch.messages)
        try:
            await self.process_fn(user_id, merged)
        except Exception as e:
            logger.error("Batch processing error | user=%s | %s", user_id, e, exc_info=True)
        return True

    async def flush_all(self) -> int:
        """Flush every pending batch (e.g. at shutdown); returns the count."""
        flushed = 0
        for user_id in list(self._batches.keys()):
            if await self.flush(user_id):
                flushed += 1
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
        return flushed

    # ─── 取消 ───

    def clear_batch(self, user_id: str) -> None:
        """Discard *user_id*'s pending batch without processing it."""
        batch = self._batches.pop(user_id, None)
        if batch is not None:
            batch.cancel_timer()
            logger.debug(
                "Batch discarded | user=%s | messages=%d", user_id, len(batch.messages)
            )

    def close(self) -> None:
        """Cancel every timer and drop all pending batches."""
        for batch in self._batches.values():
            batch.cancel_timer()
        self._batches.clear()

    # ─── 状态 ───

    def has_batch(self, user_id: str) -> bool:
        return user_id in self._batches

    def pending_count(self, user_id: str) -> int:
        batch = self._batches.get(user_id)
        return len(batch.messages) if batch else 0

    def stats(self) -> Dict[str, int]:
        return {
            "active_batches": len(self._batches),
            "pending_messages": sum(len(b.messages) for b in self._batches.values()),
        }
