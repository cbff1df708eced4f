"""
Relay 配置管理。

支持从环境变量 (.env) 或代码直接构造。
Runtime: "webhook" 或 "polling"。所有时长单位均为秒。
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv


def _to_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value not in (None, "") else default
    except ValueError:
        return default


def _to_float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value not in (None, "") else default
    except ValueError:
        return default


@dataclass
class RelayConfig:
    """Relay 运行配置。"""

    # ── Telegram ──
    bot_token: str = ""
    runtime_mode: str = "webhook"  # "webhook" | "polling"
    webhook_url: str = ""
    webhook_path: str = ""
    webhook_host: str = "0.0.0.0"
    webhook_port: int = 8443
    webhook_secret: str = ""

    # ── 调试 ──
    debug: bool = False
    log_file: str = ""

    # ── 人设 ──
    agent_name: str = "AI Assistant"
    agent_personality: str = "helpful, friendly, professional"
    agent_language: str = ""

    # ── 功能开关 ──
    enable_voice: bool = False
    auto_transcribe: bool = False
    enable_functions: bool = True
    stream_responses: bool = False
    summarize_history: bool = False
    compress_system_prompt: bool = False

    # ── 模型调用 ──
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    max_completion_tokens: int = 300
    retry_attempts: int = 3
    retry_initial_delay: float = 1.0
    stream_chunk_size: int = 50

    # ── 合批 ──
    batch_window: float = 2.0
    max_batch_size: int = 5

    # ── 响应缓存 ──
    cache_ttl: float = 300.0
    cache_max_size: int = 1000
    cache_sweep_interval: float = 60.0
    fingerprint_prefix: int = 100

    # ── 对话历史 ──
    session_timeout: float = 3600.0
    max_history: int = 50
    max_history_tokens: int = 1500

    # ── 扩展配置 (业务层自行使用) ──
    extras: dict = field(default_factory=dict)

    def completion_options(self) -> dict:
        """Options a ``complete_fn`` can forward to the provider."""
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_completion_tokens,
        }

    @classmethod
    def from_env(cls, env_file: str = ".env") -> RelayConfig:
        """
        从 .env 文件和环境变量中加载配置。

        环境变量优先级高于 .env 文件。
        """
        load_dotenv(env_file, override=False)
        d = cls()

        runtime_mode = os.getenv("RUNTIME_MODE", d.runtime_mode).strip().lower()
        if runtime_mode not in {"webhook", "polling"}:
            runtime_mode = "webhook"

        return cls(
            bot_token=os.getenv("TELEGRAM_BOT_TOKEN", "").strip(),
            runtime_mode=runtime_mode,
            webhook_url=os.getenv("TELEGRAM_WEBHOOK_URL", "").strip(),
            webhook_path=os.getenv("WEBHOOK_PATH", "").strip(),
            webhook_host=os.getenv("WEBAPP_HOST", d.webhook_host).strip(),
            webhook_port=_to_int(os.getenv("WEBAPP_PORT"), d.webhook_port),
            webhook_secret=os.getenv("WEBHOOK_SECRET_TOKEN", "").strip(),
            debug=_to_bool(os.getenv("DEBUG")),
            log_file=os.getenv("LOG_FILE", "").strip(),
            agent_name=os.getenv("AGENT_NAME", d.agent_name).strip() or d.agent_name,
            agent_personality=os.getenv("AGENT_PERSONALITY", d.agent_personality).strip(),
            agent_language=os.getenv("AGENT_LANGUAGE", "").strip(),
            enable_voice=_to_bool(os.getenv("ENABLE_VOICE")),
            auto_transcribe=_to_bool(os.getenv("AUTO_TRANSCRIBE")),
            enable_functions=_to_bool(os.getenv("ENABLE_FUNCTIONS"), default=True),
            stream_responses=_to_bool(os.getenv("STREAM_RESPONSES")),
            summarize_history=_to_bool(os.getenv("SUMMARIZE_HISTORY")),
            compress_system_prompt=_to_bool(os.getenv("COMPRESS_SYSTEM_PROMPT")),
            model=os.getenv("MODEL", d.model).strip(),
            temperature=_to_float(os.getenv("TEMPERATURE"), d.temperature),
            max_completion_tokens=_to_int(os.getenv("MAX_COMPLETION_TOKENS"), d.max_completion_tokens),
            retry_attempts=_to_int(os.getenv("RETRY_ATTEMPTS"), d.retry_attempts),
            retry_initial_delay=_to_float(os.getenv("RETRY_INITIAL_DELAY"), d.retry_initial_delay),
            stream_chunk_size=_to_int(os.getenv("STREAM_CHUNK_SIZE"), d.stream_chunk_size),
            batch_window=_to_float(os.getenv("BATCH_TIMEOUT"), d.batch_window),
            max_batch_size=_to_int(os.getenv("MAX_BATCH_SIZE"), d.max_batch_size),
            cache_ttl=_to_float(os.getenv("CACHE_TTL"), d.cache_ttl),
            cache_max_size=_to_int(os.getenv("CACHE_MAX_SIZE"), d.cache_max_size),
            cache_sweep_interval=_to_float(os.getenv("CACHE_SWEEP_INTERVAL"), d.cache_sweep_interval),
            fingerprint_prefix=_to_int(os.getenv("FINGERPRINT_PREFIX"), d.fingerprint_prefix),
            session_timeout=_to_float(os.getenv("SESSION_TIMEOUT"), d.session_timeout),
            max_history=_to_int(os.getenv("MAX_MESSAGES_HISTORY"), d.max_history),
            max_history_tokens=_to_int(os.getenv("MAX_HISTORY_TOKENS"), d.max_history_tokens),
        )

    def summary(self) -> str:
        """返回配置摘要（敏感信息脱敏）。"""
        token_display = f"{self.bot_token[:10]}..." if self.bot_token else "未配置"
        return (
            f"Agent: {self.agent_name}\n"
            f"Token: {token_display}\n"
            f"Runtime: {self.runtime_mode.upper()}\n"
            f"Webhook: {self.webhook_url[:50]}\n"
            f"Model: {self.model}\n"
            f"Batch: {self.batch_window}s / {self.max_batch_size} msgs\n"
            f"Cache: ttl={self.cache_ttl}s max={self.cache_max_size}\n"
            f"History: {self.max_history} msgs / {self.max_history_tokens} tokens\n"
            f"Debug: {self.debug}"
        )
