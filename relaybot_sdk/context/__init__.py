"""
上下文预算管理 — token 估算、相似度、重要性评分、历史裁剪与 prompt 压缩。

Quick Start::

    from relaybot_sdk.context import HistoryOptimizer, PromptCompressor

    optimizer = HistoryOptimizer(max_tokens=1500)
    trimmed = optimizer.optimize(optimizer.deduplicate(history))

    result = PromptCompressor().compress(system_prompt, "Bot")
    print(result.compressed, result.savings_percent)
"""

from relaybot_sdk.context.tokens import count_tokens, estimate_tokens
from relaybot_sdk.context.similarity import jaccard_similarity, messages_similar
from relaybot_sdk.context.importance import rank_messages, score_message
from relaybot_sdk.context.optimizer import (
    Fallback,
    HistoryOptimizer,
    OptimizationStats,
    Summarized,
    SummaryOutcome,
    truncate_content,
)
from relaybot_sdk.context.prompt import (
    CompressionResult,
    PromptCompressor,
    build_persona_prompt,
    build_summary_prompt,
)

__all__ = [
    "estimate_tokens",
    "count_tokens",
    "jaccard_similarity",
    "messages_similar",
    "score_message",
    "rank_messages",
    "HistoryOptimizer",
    "Summarized",
    "Fallback",
    "SummaryOutcome",
    "OptimizationStats",
    "truncate_content",
    "PromptCompressor",
    "CompressionResult",
    "build_persona_prompt",
    "build_summary_prompt",
]
