"""
RelayConfig / RelayBot / setup_logging 测试。
"""

import logging

import pytest

from relaybot_sdk.core.agent import RelayBot
from relaybot_sdk.core.config import RelayConfig
from relaybot_sdk.core.relay import ChatRelay
from relaybot_sdk.utils.logger import setup_logging

_ENV_KEYS = (
    "TELEGRAM_BOT_TOKEN", "RUNTIME_MODE", "AGENT_NAME", "ENABLE_FUNCTIONS",
    "BATCH_TIMEOUT", "MAX_BATCH_SIZE", "CACHE_TTL", "MAX_HISTORY_TOKENS",
    "SESSION_TIMEOUT", "STREAM_RESPONSES", "WEBAPP_PORT",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return tmp_path


async def _fake_llm(messages, tools=None, **options):
    return {"content": "ok"}


# ══════════════════════════════════════════════
# RelayConfig
# ══════════════════════════════════════════════

class TestRelayConfig:
    def test_defaults(self):
        cfg = RelayConfig()
        assert cfg.batch_window == 2.0
        assert cfg.max_batch_size == 5
        assert cfg.cache_ttl == 300.0
        assert cfg.cache_max_size == 1000
        assert cfg.session_timeout == 3600.0
        assert cfg.max_history_tokens == 1500
        assert cfg.retry_attempts == 3

    def test_from_env(self, clean_env, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
        monkeypatch.setenv("RUNTIME_MODE", "POLLING")
        monkeypatch.setenv("AGENT_NAME", "Nova")
        monkeypatch.setenv("ENABLE_FUNCTIONS", "false")
        monkeypatch.setenv("BATCH_TIMEOUT", "0.5")
        monkeypatch.setenv("MAX_BATCH_SIZE", "8")
        monkeypatch.setenv("CACHE_TTL", "60")
        monkeypatch.setenv("STREAM_RESPONSES", "yes")

        cfg = RelayConfig.from_env(str(clean_env / ".env"))

        assert cfg.bot_token == "123:abc"
        assert cfg.runtime_mode == "polling"
        assert cfg.agent_name == "Nova"
        assert cfg.enable_functions is False
        assert cfg.batch_window == 0.5
        assert cfg.max_batch_size == 8
        assert cfg.cache_ttl == 60.0
        assert cfg.stream_responses is True

    def test_invalid_values_fall_back(self, clean_env, monkeypatch):
        monkeypatch.setenv("RUNTIME_MODE", "carrier-pigeon")
        monkeypatch.setenv("WEBAPP_PORT", "not-a-port")
        monkeypatch.setenv("MAX_HISTORY_TOKENS", "")

        cfg = RelayConfig.from_env(str(clean_env / ".env"))

        assert cfg.runtime_mode == "webhook"
        assert cfg.webhook_port == 8443
        assert cfg.max_history_tokens == 1500

    def test_env_file(self, clean_env):
        env_file = clean_env / ".env"
        env_file.write_text("AGENT_NAME=FromFile\nSESSION_TIMEOUT=120\n")

        cfg = RelayConfig.from_env(str(env_file))

        assert cfg.agent_name == "FromFile"
        assert cfg.session_timeout == 120.0

    def test_environment_wins_over_file(self, clean_env, monkeypatch):
        env_file = clean_env / ".env"
        env_file.write_text("AGENT_NAME=FromFile\n")
        monkeypatch.setenv("AGENT_NAME", "FromEnv")

        assert RelayConfig.from_env(str(env_file)).agent_name == "FromEnv"

    def test_completion_options(self):
        opts = RelayConfig(model="m", temperature=0.2, max_completion_tokens=99).completion_options()
        assert opts == {"model": "m", "temperature": 0.2, "max_tokens": 99}

    def test_summary_masks_token(self):
        summary = RelayConfig(bot_token="1234567890SECRET").summary()
        assert "1234567890..." in summary
        assert "SECRET" not in summary


# ══════════════════════════════════════════════
# RelayBot
# ══════════════════════════════════════════════

class TestRelayBot:
    def test_build_requires_token(self):
        bot = RelayBot(RelayConfig(), complete_fn=_fake_llm)
        with pytest.raises(ValueError):
            bot.build()

    def test_build_registers_handlers(self):
        bot = RelayBot(RelayConfig(bot_token="123:abc"), complete_fn=_fake_llm)
        app = bot.build()
        assert bot.application is app
        assert len(app.handlers[0]) == 2
        assert app.error_handlers

    def test_accepts_prebuilt_relay(self):
        relay = ChatRelay(RelayConfig(), _fake_llm)
        bot = RelayBot(RelayConfig(bot_token="123:abc"), relay=relay)
        assert bot.relay is relay

    def test_requires_complete_fn_or_relay(self):
        with pytest.raises(ValueError):
            RelayBot(RelayConfig())

    def test_relay_kwargs_forwarded(self):
        async def synth(text):
            return b""

        bot = RelayBot(RelayConfig(), complete_fn=_fake_llm, synthesize_fn=synth)
        assert bot.relay.voice.can_synthesize

    def test_webhook_requires_url(self):
        bot = RelayBot(RelayConfig(bot_token="123:abc", runtime_mode="webhook"), complete_fn=_fake_llm)
        with pytest.raises(ValueError):
            bot.run()


# ══════════════════════════════════════════════
# setup_logging
# ══════════════════════════════════════════════

class TestSetupLogging:
    def test_returns_sdk_logger(self):
        logger = setup_logging()
        assert logger.name == "relaybot_sdk"
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_debug(self):
        setup_logging(debug=True)
        assert logging.getLogger().level == logging.DEBUG

    def test_log_file(self, tmp_path):
        path = tmp_path / "logs" / "relay.log"
        setup_logging(log_file=str(path))
        logging.getLogger("relaybot_sdk.test").info("hello file")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert path.exists()
        assert "hello file" in path.read_text(encoding="utf-8")
