"""语音 — 转写 / 合成。"""

from relaybot_sdk.voice.processor import (
    TRANSCRIPTION_APOLOGY,
    SynthesizeFn,
    TranscribeFn,
    VoiceProcessor,
)

__all__ = ["VoiceProcessor", "TranscribeFn", "SynthesizeFn", "TRANSCRIPTION_APOLOGY"]
