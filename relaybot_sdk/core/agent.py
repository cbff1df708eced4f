"""
RelayBot — SDK 运行入口。

封装 python-telegram-bot 的 Application，自动完成：
  - 文本 / 语音 / 图片消息 → ChatRelay（经 MessageBatcher 合批）
  - /reset 命令清空当前会话
  - post_init 启动缓存清扫，post_shutdown 冲刷未处理批次
  - Webhook / Polling 启动
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from telegram import Update
from telegram.error import NetworkError
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from relaybot_sdk.core.config import RelayConfig
from relaybot_sdk.core.relay import ChatRelay
from relaybot_sdk.gateway.telegram import TelegramGateway, inbound_from_update
from relaybot_sdk.llm.client import CompleteFn

logger = logging.getLogger("relaybot_sdk")

INBOUND_FILTER = (
    filters.TEXT & ~filters.COMMAND
) | filters.VOICE | filters.AUDIO | filters.PHOTO


class RelayBot:
    """
    Telegram 上的 ChatRelay 运行器。

    Usage::

        from relaybot_sdk import RelayBot, RelayConfig

        async def my_llm(messages, tools=None, **options):
            response = await client.chat.completions.create(
                messages=messages, tools=tools, **options,
            )
            return response.choices[0].message

        bot = RelayBot(RelayConfig.from_env(), complete_fn=my_llm)
        bot.run()

    额外的关键字参数（stream_fn / transcribe_fn / synthesize_fn /
    tool_registry）原样传给 ChatRelay。也可以直接传入已构建好的 ``relay``，
    此时忽略 complete_fn 与额外参数。
    """

    def __init__(
        self,
        config: RelayConfig,
        complete_fn: Optional[CompleteFn] = None,
        relay: Optional[ChatRelay] = None,
        **relay_kwargs: Any,
    ) -> None:
        if relay is None:
            if complete_fn is None:
                raise ValueError("RelayBot 需要 complete_fn 或 relay 之一。")
            relay = ChatRelay(config, complete_fn, **relay_kwargs)
        self._config = config
        self._relay = relay
        self._application: Optional[Application] = None

    @property
    def config(self) -> RelayConfig:
        return self._config

    @property
    def relay(self) -> ChatRelay:
        return self._relay

    @property
    def application(self) -> Optional[Application]:
        return self._application

    # ─── Handlers ───

    async def on_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        inbound = inbound_from_update(update)
        if inbound is None:
            return
        await self._relay.handle_inbound(inbound)

    async def on_reset(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat = update.effective_chat
        if chat is None:
            return
        self._relay.clear_history(str(chat.id))
        if update.effective_message is not None:
            await update.effective_message.reply_text("Conversation cleared.")

    # ─── 构建 Application ───

    def build(self) -> Application:
        """构建 python-telegram-bot Application 实例。"""
        cfg = self._config
        if not cfg.bot_token:
            raise ValueError("bot_token 为空！请在 .env 中配置 TELEGRAM_BOT_TOKEN。")

        relay = self._relay

        async def _post_init(app: Application) -> None:
            relay.gateway = TelegramGateway(app.bot)
            relay.connected = True
            await relay.start()

        async def _post_shutdown(app: Application) -> None:
            await relay.stop()
            relay.connected = False

        application = (
            ApplicationBuilder()
            .token(cfg.bot_token)
            .post_init(_post_init)
            .post_shutdown(_post_shutdown)
            .build()
        )

        application.add_handler(CommandHandler("reset", self.on_reset))
        application.add_handler(MessageHandler(INBOUND_FILTER, self.on_message))
        application.add_error_handler(_default_error_handler)

        self._application = application
        return application

    # ─── 运行 ───

    def run(self) -> None:
        """构建并启动 Bot。"""
        cfg = self._config
        application = self.build()

        logger.info("RelayBot SDK v%s", _get_version())
        logger.info(cfg.summary())

        if cfg.runtime_mode == "webhook":
            if not cfg.webhook_url:
                raise ValueError("runtime_mode=webhook 但 webhook_url 为空！")
            webhook_full = cfg.webhook_url.rstrip("/")
            if cfg.webhook_path:
                webhook_full += "/" + cfg.webhook_path.strip("/")
            logger.info("启动 Webhook: %s", webhook_full)
            application.run_webhook(
                listen=cfg.webhook_host,
                port=cfg.webhook_port,
                url_path=cfg.webhook_path.strip("/") if cfg.webhook_path else "",
                webhook_url=webhook_full,
                secret_token=cfg.webhook_secret or None,
            )
        else:
            logger.info("启动 Polling 模式")
            application.run_polling()


def _get_version() -> str:
    try:
        from relaybot_sdk import __version__
        return __version__
    except ImportError:
        return "unknown"


async def _default_error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """默认错误处理器。"""
    err = context.error
    if isinstance(err, NetworkError):
        logger.warning("Telegram 网络错误: %s", err)
    else:
        logger.exception("处理更新时出错: %s", err)
