"""
PromptCompressor — 把人设 system prompt 压缩成固定四行模板。

有损、与内容无关的常数级压缩：只保留 agent 名称，不理解原 prompt 内容。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from relaybot_sdk.context.tokens import estimate_tokens

DEFAULT_AGENT_NAME = "AI Assistant"

_COMPACT_TEMPLATE = (
    "{name} - {role}.\n"
    "Style: {tone}\n"
    "Format: {format}\n"
    "Keep responses brief and helpful."
)

_PERSONA_TEMPLATE = """You are {name}, a {role}.

Personality: {personality}

Rules:
- Be conversational and concise (chat message format)
- Use emojis sparingly
- Respond in {language}
- Acknowledge voice messages naturally

Keep responses brief and helpful."""

_SUMMARY_TEMPLATE = (
    "Summarize this conversation in 2-3 sentences, "
    "focusing on key context and user needs:\n\n{conversation}"
)


@dataclass
class CompressionResult:
    """Outcome of :meth:`PromptCompressor.compress`."""

    compressed: str
    original_tokens: int
    compressed_tokens: int
    savings_percent: int


class PromptCompressor:
    """Replaces a persona prompt with a compact canonical template.

    Parameters:
        role: Role line of the template.
        tone: ``Style:`` line.
        message_format: ``Format:`` line.
    """

    def __init__(
        self,
        role: str = "messaging AI assistant",
        tone: str = "helpful, concise",
        message_format: str = "conversational chat messages",
    ) -> None:
        self.role = role
        self.tone = tone
        self.message_format = message_format

    def compress(
        self, original_prompt: str, agent_name: str = DEFAULT_AGENT_NAME
    ) -> CompressionResult:
        compressed = _COMPACT_TEMPLATE.format(
            name=agent_name or DEFAULT_AGENT_NAME,
            role=self.role,
            tone=self.tone,
            format=self.message_format,
        )
        original_tokens = estimate_tokens(original_prompt)
        compressed_tokens = estimate_tokens(compressed)

        if original_tokens == 0:
            savings = 0
        else:
            savings = round((1 - compressed_tokens / original_tokens) * 100)

        return CompressionResult(
            compressed=compressed,
            original_tokens=original_tokens,
            compressed_tokens=compressed_tokens,
            savings_percent=savings,
        )


def build_persona_prompt(
    name: str,
    personality: str = "helpful, friendly, professional",
    language: Optional[str] = None,
    role: str = "messaging AI assistant",
) -> str:
    """Full persona system prompt for *name*."""
    return _PERSONA_TEMPLATE.format(
        name=name or DEFAULT_AGENT_NAME,
        role=role,
        personality=personality or "helpful, friendly, professional",
        language=language or "the user's language",
    )


def build_summary_prompt(conversation_text: str) -> str:
    """Minimal prompt asking the model to summarize *conversation_text*."""
    return _SUMMARY_TEMPLATE.format(conversation=conversation_text)
