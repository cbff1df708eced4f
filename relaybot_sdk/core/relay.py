"""
ChatRelay — 消息网关与 LLM 之间的会话中介。

入站消息 → MessageBatcher（防抖合批）→ ConversationStore（追加）
    → Responder（历史裁剪 + prompt）→ 模型 → ConversationStore（追加回复）
    → ResponseCache（缓存）→ MessageGateway（投递）

Usage::

    relay = ChatRelay(RelayConfig.from_env(), complete_fn=my_llm, gateway=gateway)
    await relay.start()

    await relay.handle_inbound(InboundMessage(user_id="42", text="hi"))
    print(relay.get_status())

    await relay.stop()
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from relaybot_sdk.batching.batcher import MessageBatcher
from relaybot_sdk.cache.response_cache import ResponseCache, make_fingerprint
from relaybot_sdk.context.optimizer import HistoryOptimizer
from relaybot_sdk.context.prompt import PromptCompressor, build_persona_prompt
from relaybot_sdk.core.config import RelayConfig
from relaybot_sdk.core.responder import Responder
from relaybot_sdk.gateway.base import MessageGateway
from relaybot_sdk.gateway.types import (
    KIND_IMAGE,
    KIND_TEXT,
    KIND_VOICE,
    InboundMessage,
    OutboundResponse,
)
from relaybot_sdk.llm.client import CompleteFn, CompletionResult, ModelClient, StreamFn
from relaybot_sdk.memory.conversation import ConversationStore
from relaybot_sdk.memory.types import ROLE_ASSISTANT, ROLE_USER
from relaybot_sdk.tools.registry import ToolRegistry, default_registry
from relaybot_sdk.voice.processor import SynthesizeFn, TranscribeFn, VoiceProcessor

logger = logging.getLogger("relaybot_sdk.core")

ERROR_APOLOGY = "Sorry, I encountered an error. Please try again."
VOICE_UNAVAILABLE = "[Unable to process voice message]"
SLOW_RESPONSE_SECONDS = 5.0


class ChatRelay:
    """Mediates chat sessions between a gateway and a language model.

    Parameters:
        config: Relay configuration.
        complete_fn: ``async (messages, tools, **options) -> message`` model
            call; ``options`` come from :meth:`RelayConfig.completion_options`.
        gateway: Where replies are delivered; optional for direct use of
            :meth:`process_inbound_message`.
        stream_fn: Optional streaming model call.
        transcribe_fn: Optional speech-to-text.
        synthesize_fn: Optional text-to-speech.
        tool_registry: Tools offered to the model. Defaults to the built-in
            tools when ``config.enable_functions`` is on.
        clock: Epoch time source for history timestamps.
        cache_clock: Monotonic time source for the response cache.
        sleep: Backoff sleep used by retries.
    """

    def __init__(
        self,
        config: RelayConfig,
        complete_fn: CompleteFn,
        gateway: Optional[MessageGateway] = None,
        stream_fn: Optional[StreamFn] = None,
        transcribe_fn: Optional[TranscribeFn] = None,
        synthesize_fn: Optional[SynthesizeFn] = None,
        tool_registry: Optional[ToolRegistry] = None,
        clock: Callable[[], float] = time.time,
        cache_clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.gateway = gateway
        self.connected = False

        self.store = ConversationStore(
            session_timeout=config.session_timeout,
            max_history=config.max_history,
            clock=clock,
        )
        self.cache = ResponseCache(
            ttl=config.cache_ttl,
            max_size=config.cache_max_size,
            clock=cache_clock,
        )
        self.optimizer = HistoryOptimizer(max_tokens=config.max_history_tokens, clock=clock)

        if tool_registry is None and config.enable_functions:
            tool_registry = default_registry()
        self.model = ModelClient(
            complete_fn,
            stream_fn=stream_fn,
            tool_registry=tool_registry if config.enable_functions else None,
            retry_attempts=config.retry_attempts,
            retry_initial_delay=config.retry_initial_delay,
            stream_chunk_size=config.stream_chunk_size,
            options=config.completion_options(),
            sleep=sleep,
        )
        self.voice = VoiceProcessor(transcribe_fn, synthesize_fn)

        self.responder = Responder(
            self.model,
            self.store,
            self.optimizer,
            system_prompt=build_persona_prompt(
                config.agent_name, config.agent_personality, config.agent_language
            ),
            agent_name=config.agent_name,
            max_history_tokens=config.max_history_tokens,
            summarize_history=config.summarize_history,
            compressor=PromptCompressor() if config.compress_system_prompt else None,
        )
        self.batcher = MessageBatcher(
            self._process_batch,
            batch_window=config.batch_window,
            max_batch_size=config.max_batch_size,
        )

    # ─── 生命周期 ───

    async def start(self) -> None:
        """Start periodic cache housekeeping."""
        await self.cache.start_sweeper(self.config.cache_sweep_interval)

    async def stop(self) -> None:
        """Flush pending batches, then stop housekeeping."""
        flushed = await self.batcher.flush_all()
        if flushed:
            logger.info("Flushed %d pending batches on shutdown", flushed)
        await self.cache.stop_sweeper()

    # ─── 入站 ───

    async def handle_inbound(self, message: InboundMessage) -> None:
        """Queue *message*; it is processed when its batch flushes."""
        logger.info("New message | user=%s | kind=%s", message.user_id, message.kind)
        await self.batcher.add_message(message.user_id, message)

    async def process_inbound_message(
        self,
        message: InboundMessage,
        stream_sink: Optional[Callable[[str], Any]] = None,
    ) -> Optional[OutboundResponse]:
        """Produce the reply for one (possibly merged) message.

        Returns None when the message has no extractable text. Model and
        speech-synthesis errors propagate.
        """
        user_id = message.user_id
        extracted = await self._extract_text(message)
        if extracted is None:
            logger.warning("No content to process | user=%s | kind=%s", user_id, message.kind)
            return None
        text, is_voice = extracted

        key = make_fingerprint(user_id, text, self.config.fingerprint_prefix)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Returning cached response | user=%s", user_id)
            return await self._render(cached, is_voice)

        self.store.append(user_id, ROLE_USER, text)
        result = await self.responder.generate(
            user_id, sink=stream_sink, stream=self.config.stream_responses
        )
        self.store.append(user_id, ROLE_ASSISTANT, result.text)
        self.cache.put(key, result)

        if result.tool_calls:
            logger.info("Functions called | user=%s | %s", user_id, result.tool_calls)
        return await self._render(result, is_voice)

    async def _process_batch(self, user_id: str, message: InboundMessage) -> None:
        """Flush callback: reply, deliver, and apologise on any failure."""
        try:
            await self._send_typing(user_id)
            started = time.monotonic()
            response = await self.process_inbound_message(message, self._log_chunk)
            elapsed = time.monotonic() - started
            if response is None:
                return
            logger.info("Response generated in %.0fms | user=%s", elapsed * 1000, user_id)
            if elapsed > SLOW_RESPONSE_SECONDS:
                logger.warning("Slow response: %.1fs | user=%s", elapsed, user_id)
            await self._deliver(user_id, response)
        except Exception as e:
            logger.error("Message processing error | user=%s | %s", user_id, e, exc_info=True)
            await self._deliver(user_id, OutboundResponse.as_text(ERROR_APOLOGY))

    async def _extract_text(self, message: InboundMessage) -> Optional[Tuple[str, bool]]:
        if message.kind == KIND_TEXT and message.text:
            return message.text, False

        if message.kind == KIND_VOICE and self.config.auto_transcribe:
            try:
                audio = message.audio
                if audio is None and self.gateway is not None:
                    audio = await self.gateway.download_audio(message)
                if not audio:
                    raise ValueError("Failed to download audio")
            except Exception as e:
                logger.error("Voice processing error | user=%s | %s", message.user_id, e)
                return VOICE_UNAVAILABLE, True
            transcript = await self.voice.transcribe(audio)
            return f"[Voice Message]: {transcript}", True

        if message.kind == KIND_IMAGE and message.caption:
            return f"[Image with caption]: {message.caption}", False

        return None

    async def _render(self, result: CompletionResult, is_voice: bool) -> OutboundResponse:
        if is_voice and self.config.enable_voice and self.voice.can_synthesize:
            audio = await self.voice.synthesize(result.text)
            return OutboundResponse.as_audio(audio, result.text)
        return OutboundResponse.as_text(result.text)

    # ─── 出站 ───

    async def _deliver(self, user_id: str, response: OutboundResponse) -> None:
        if self.gateway is None:
            logger.warning("Gateway not set, cannot deliver reply to %s", user_id)
            return
        try:
            await self.gateway.send(user_id, response)
        except Exception as e:
            logger.error("Failed to deliver reply | user=%s | error=%s", user_id, e)

    async def _send_typing(self, user_id: str) -> None:
        if self.gateway is None:
            return
        try:
            await self.gateway.send_typing(user_id)
        except Exception as e:
            logger.debug("Typing indicator failed | user=%s | %s", user_id, e)

    @staticmethod
    def _log_chunk(chunk: str) -> None:
        logger.debug("Streaming chunk: %s...", chunk[:20])

    # ─── 管理接口 ───

    def get_status(self) -> Dict[str, Any]:
        batcher = self.batcher.stats()
        return {
            "connected": self.connected,
            "active_conversations": self.store.conversation_count,
            "total_messages": self.store.message_count,
            "cache_size": len(self.cache),
            "active_batches": batcher["active_batches"],
            "pending_messages": batcher["pending_messages"],
            "cache": self.cache.stats(),
            "config": {
                "name": self.config.agent_name,
                "personality": self.config.agent_personality,
                "language": self.config.agent_language,
                "voice_enabled": self.config.enable_voice,
                "functions_enabled": self.config.enable_functions,
                "streaming_enabled": self.config.stream_responses and self.model.supports_streaming,
            },
        }

    def clear_history(self, user_id: Optional[str] = None) -> None:
        """Forget one user (history, cached replies, pending batch) or everyone."""
        if user_id is None:
            self.store.clear()
            self.cache.clear()
            self.batcher.close()
            return
        self.store.clear(user_id)
        self.cache.invalidate_user(user_id)
        self.batcher.clear_batch(user_id)

    def get_recent_messages(self, limit: int = 20) -> List[Dict[str, Any]]:
        return self.store.recent_messages(limit)
