"""
HistoryOptimizer — 在 token 预算内裁剪 / 去重 / 摘要对话历史。

核心规则:
    - 最近 4 条消息（recent window）无条件保留，只会被直接截断
    - 更早的消息按重要性排序后贪心加入，遇到第一条放不下的即停止
    - 连最近窗口都超预算时，从新到旧保留整条消息，溢出的那条掐头去尾

Usage::

    from relaybot_sdk.context import HistoryOptimizer

    optimizer = HistoryOptimizer(max_tokens=1500)
    trimmed = optimizer.optimize(optimizer.deduplicate(history))

    outcome = await optimizer.summarize(history, summarize_fn)
    if isinstance(outcome, Summarized):
        print(outcome.summary)
    messages = outcome.messages
"""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from relaybot_sdk.context.importance import score_message
from relaybot_sdk.context.similarity import messages_similar
from relaybot_sdk.context.tokens import CHARS_PER_TOKEN, count_tokens, estimate_tokens
from relaybot_sdk.memory.types import ROLE_SYSTEM, Message

logger = logging.getLogger("relaybot_sdk.context")

TRUNCATION_MARKER = "...[truncated]..."
SUMMARY_PREFIX = "Previous conversation summary: "

# summarize_fn: async (conversation_text) -> summary text
SummarizeFn = Callable[[str], Awaitable[str]]


# ──────────────────────────────────────────────
# Summarize result types
# ──────────────────────────────────────────────


@dataclass
class Summarized:
    """Older history was replaced by one summary entry.

    Attributes:
        messages: ``[summary_message] + recent tail``.
        summary: Raw text returned by the summarizer.
    """

    messages: List[Message]
    summary: str


@dataclass
class Fallback:
    """No summary was used.

    Attributes:
        messages: History to send instead (unchanged or optimized).
        reason: ``"too_short"`` or ``"summarizer_failed"``.
        error: The summarizer's exception, if it failed.
    """

    messages: List[Message]
    reason: str
    error: Optional[BaseException] = None


SummaryOutcome = Union[Summarized, Fallback]


@dataclass
class OptimizationStats:
    original_tokens: int = 0
    optimized_tokens: int = 0
    savings: int = 0
    savings_percent: int = 0
    messages_removed: int = 0


# ──────────────────────────────────────────────
# HistoryOptimizer
# ──────────────────────────────────────────────


class HistoryOptimizer:
    """Fits a conversation history into a token budget.

    Parameters:
        max_tokens: Default budget for :meth:`optimize` (default 1500).
        recent_window: Tail size that importance ranking never drops
            (default 4).
        truncation_floor: A message is only spliced when more than this many
            tokens remain (default 50).
        summary_min_messages: Histories shorter than this are never
            summarized (default 10).
        summary_keep_recent: Tail kept verbatim by :meth:`summarize`
            (default 6).
        clock: Returns the current epoch time, used for message age.
    """

    def __init__(
        self,
        max_tokens: int = 1500,
        recent_window: int = 4,
        truncation_floor: int = 50,
        summary_min_messages: int = 10,
        summary_keep_recent: int = 6,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_tokens = max_tokens
        self.recent_window = recent_window
        self.truncation_floor = truncation_floor
        self.summary_min_messages = summary_min_messages
        self.summary_keep_recent = summary_keep_recent
        self._clock = clock

    # ─── optimize ───

    def optimize(
        self, history: Sequence[Message], max_tokens: Optional[int] = None
    ) -> List[Message]:
        """Return the subset of *history* that fits *max_tokens*.

        Older messages that are kept come out in their original order,
        followed by the recent window.
        """
        if not history:
            return []
        budget = self.max_tokens if max_tokens is None else max_tokens

        recent = list(history[-self.recent_window:]) if self.recent_window else []
        older = list(history[: len(history) - len(recent)])

        total = count_tokens(recent)
        if total >= budget:
            return self.truncate(recent, budget)

        now = self._clock()
        ranked = sorted(
            range(len(older)),
            key=lambda i: score_message(older[i], now),
            reverse=True,
        )
        kept_idx = set()
        for i in ranked:
            tokens = estimate_tokens(older[i].content)
            if total + tokens > budget:
                break
            kept_idx.add(i)
            total += tokens

        kept = [m for i, m in enumerate(older) if i in kept_idx]
        if len(kept) < len(older):
            logger.debug(
                "History pruned | kept=%d dropped=%d tokens=%d budget=%d",
                len(kept) + len(recent),
                len(older) - len(kept),
                total,
                budget,
            )
        return kept + recent

    def truncate(self, messages: Sequence[Message], max_tokens: int) -> List[Message]:
        """Keep whole messages newest-first; splice the first that overflows."""
        kept: List[Message] = []
        total = 0

        for msg in reversed(messages):
            tokens = estimate_tokens(msg.content)
            if total + tokens > max_tokens:
                available = max_tokens - total
                if available > self.truncation_floor:
                    kept.append(
                        dataclasses.replace(
                            msg,
                            content=truncate_content(msg.content, available),
                            truncated=True,
                        )
                    )
                break
            kept.append(msg)
            total += tokens

        kept.reverse()
        return kept

    # ─── deduplicate ───

    def deduplicate(self, history: Sequence[Message]) -> List[Message]:
        """Drop messages that near-duplicate the message right before them.

        Only adjacent repeats are removed; the first message is always kept.
        A run of near-duplicates collapses onto its first member, so no two
        neighbours in the result are similar and a second pass is a no-op.
        """
        if len(history) < 2:
            return list(history)

        result = [history[0]]
        for current in history[1:]:
            if not messages_similar(current, result[-1]):
                result.append(current)
        return result

    # ─── summarize ───

    async def summarize(
        self, history: Sequence[Message], summarize_fn: SummarizeFn
    ) -> SummaryOutcome:
        """Replace the older part of a long history with one summary entry.

        Never raises: a summarizer failure yields :class:`Fallback` carrying
        ``optimize(history)``.
        """
        if len(history) < self.summary_min_messages:
            return Fallback(messages=list(history), reason="too_short")

        recent = list(history[-self.summary_keep_recent:])
        older = history[: len(history) - len(recent)]
        conversation_text = "\n".join(f"{m.role}: {m.content}" for m in older)

        try:
            summary = await summarize_fn(conversation_text)
        except Exception as e:
            logger.warning("Summarization failed, falling back to optimize: %s", e)
            return Fallback(
                messages=self.optimize(history),
                reason="summarizer_failed",
                error=e,
            )

        summary_msg = Message(
            role=ROLE_SYSTEM,
            content=SUMMARY_PREFIX + summary,
            timestamp=self._clock(),
            is_summary=True,
        )
        logger.info(
            "History summarized | summarized=%d kept=%d", len(older), len(recent)
        )
        return Summarized(messages=[summary_msg] + recent, summary=summary)

    # ─── stats ───

    def optimization_stats(
        self,
        original_history: Sequence[Message],
        optimized_history: Sequence[Message],
        original_prompt: str = "",
        compressed_prompt: str = "",
    ) -> OptimizationStats:
        """Token savings of an optimized request versus the original one."""
        original_tokens = estimate_tokens(original_prompt) + count_tokens(original_history)
        optimized_tokens = estimate_tokens(compressed_prompt) + count_tokens(optimized_history)
        savings = original_tokens - optimized_tokens
        percent = round(savings / original_tokens * 100) if original_tokens else 0
        return OptimizationStats(
            original_tokens=original_tokens,
            optimized_tokens=optimized_tokens,
            savings=savings,
            savings_percent=percent,
            messages_removed=len(original_history) - len(optimized_history),
        )


def truncate_content(content: str, max_tokens: int) -> str:
    """Keep the head and tail of *content* within ``max_tokens * 4`` chars."""
    max_chars = max_tokens * CHARS_PER_TOKEN
    if len(content) <= max_chars:
        return content
    keep = max_chars // 2
    return f"{content[:keep]}{TRUNCATION_MARKER}{content[len(content) - keep:]}"
