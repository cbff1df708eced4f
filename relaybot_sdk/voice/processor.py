"""
VoiceProcessor — 语音转写 / 语音合成的薄封装。

具体 provider（Whisper、TTS 等）通过注入的异步函数提供。
转写失败时返回固定致歉文案；合成失败则直接抛出。
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger("relaybot_sdk.voice")

TranscribeFn = Callable[[bytes], Awaitable[str]]
SynthesizeFn = Callable[[str], Awaitable[bytes]]

TRANSCRIPTION_APOLOGY = (
    "I received your voice message but had trouble understanding it. "
    "Could you please try again or send a text message?"
)


class VoiceProcessor:
    """Speech-to-text and text-to-speech.

    Parameters:
        transcribe_fn: ``async (audio_bytes) -> text``.
        synthesize_fn: ``async (text) -> audio_bytes``.
    """

    def __init__(
        self,
        transcribe_fn: Optional[TranscribeFn] = None,
        synthesize_fn: Optional[SynthesizeFn] = None,
    ) -> None:
        self.transcribe_fn = transcribe_fn
        self.synthesize_fn = synthesize_fn

    @property
    def can_transcribe(self) -> bool:
        return self.transcribe_fn is not None

    @property
    def can_synthesize(self) -> bool:
        return self.synthesize_fn is not None

    async def transcribe(self, audio: bytes) -> str:
        """Audio → text; never raises."""
        if self.transcribe_fn is None:
            logger.warning("transcribe_fn not set, cannot transcribe audio")
            return TRANSCRIPTION_APOLOGY
        try:
            text = await self.transcribe_fn(audio)
        except Exception as e:
            logger.error("Transcription error: %s", e)
            return TRANSCRIPTION_APOLOGY
        logger.info("Audio transcribed successfully")
        return text

    async def synthesize(self, text: str) -> bytes:
        """Text → audio; errors propagate to the caller."""
        if self.synthesize_fn is None:
            raise RuntimeError("synthesize_fn not set")
        audio = await self.synthesize_fn(text)
        logger.info("Speech generated successfully")
        return audio
