"""
Responder — 组装发给模型的上下文并取得回复。

    system prompt（可压缩）+ 去重后的历史（裁剪到 token 预算，或先做摘要）
        → ModelClient（重试 / 流式 / tool calls）
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from relaybot_sdk.context.optimizer import Fallback, HistoryOptimizer, Summarized
from relaybot_sdk.context.prompt import PromptCompressor
from relaybot_sdk.llm.client import ChunkSink, CompletionResult, ModelClient
from relaybot_sdk.memory.conversation import ConversationStore
from relaybot_sdk.memory.types import ROLE_SYSTEM, Message

logger = logging.getLogger("relaybot_sdk.core")


class Responder:
    """Builds the request for one user's turn and calls the model.

    Parameters:
        model: The model client.
        store: Conversation store to read history from.
        optimizer: History optimizer.
        system_prompt: Persona prompt sent first.
        agent_name: Name embedded in the compressed prompt.
        max_history_tokens: Token budget for history (default 1500).
        summarize_history: Summarize long histories before trimming.
        compressor: When set, the persona prompt is replaced by its
            compressed form.
    """

    def __init__(
        self,
        model: ModelClient,
        store: ConversationStore,
        optimizer: HistoryOptimizer,
        system_prompt: str,
        agent_name: str = "AI Assistant",
        max_history_tokens: int = 1500,
        summarize_history: bool = False,
        compressor: Optional[PromptCompressor] = None,
    ) -> None:
        self.model = model
        self.store = store
        self.optimizer = optimizer
        self.max_history_tokens = max_history_tokens
        self.summarize_history = summarize_history
        self.original_prompt = system_prompt

        if compressor is not None:
            result = compressor.compress(system_prompt, agent_name)
            self.system_prompt = result.compressed
            logger.info(
                "System prompt compressed | %d -> %d tokens (%d%% saved)",
                result.original_tokens,
                result.compressed_tokens,
                result.savings_percent,
            )
        else:
            self.system_prompt = system_prompt

    async def select_history(self, user_id: str) -> List[Message]:
        """History for *user_id*, deduplicated and fitted to the budget."""
        history = self.optimizer.deduplicate(self.store.get_history(user_id))

        if self.summarize_history:
            outcome = await self.optimizer.summarize(history, self.model.summarize)
            if isinstance(outcome, Summarized):
                return outcome.messages
            if isinstance(outcome, Fallback) and outcome.reason == "summarizer_failed":
                return outcome.messages

        return self.optimizer.optimize(history, self.max_history_tokens)

    async def build_messages(self, user_id: str) -> List[Dict]:
        history = await self.select_history(user_id)
        messages = [{"role": ROLE_SYSTEM, "content": self.system_prompt}]
        messages.extend(m.to_chat() for m in history)
        return messages

    async def generate(
        self,
        user_id: str,
        sink: Optional[ChunkSink] = None,
        stream: bool = False,
    ) -> CompletionResult:
        """Reply to the latest state of *user_id*'s conversation."""
        messages = await self.build_messages(user_id)
        if stream and self.model.supports_streaming:
            return await self.model.stream(messages, sink)
        return await self.model.complete(messages)
