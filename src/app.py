"""Application entry point for the protoverse relay."""

from __future__ import annotations

import argparse
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

import httpx
from art import tprint
from dotenv import load_dotenv
from telethon import events

import settings
from adapters.discord_destination import DiscordDestination
from adapters.sqlite_storage import SQLiteCorrelationStore
from adapters.telegram_mapper import build_chat_member_update, build_update
from adapters.telegram_source import TelegramSource
from client import build_client, require_env
from core.antispam import AntiSpamSet
from core.bridges import BridgeRegistry, build_bridges
from core.config import DiscordSettings, RelaySettings, TelegramSettings
from core.processor import MessageProcessor

NAME = "PROTOVERSE"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    # Bot tokens end up in Bot API URLs, so they are redacted unless disabled.
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", True):
        return []
    values = []
    for name in redact_cfg.get("patterns", ["TELEGRAM_BOT_TOKEN", "DISCORD_BOT_TOKEN", "API_HASH"]):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/protoverse.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # httpx logs every request URL at INFO, which is noise for a relay.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _relay_settings() -> RelaySettings:
    return RelaySettings(
        telegram=TelegramSettings(
            use_first_name_instead_of_username=settings.USE_FIRST_NAME_INSTEAD_OF_USERNAME,
            send_emoji_with_stickers=settings.SEND_EMOJI_WITH_STICKERS,
        ),
        discord=DiscordSettings(
            reply_length=settings.REPLY_LENGTH,
            max_reply_lines=settings.MAX_REPLY_LINES,
            message_limit=settings.MESSAGE_LIMIT,
        ),
        watermark=settings.WATERMARK,
        anti_spam_cooldown=settings.ANTI_SPAM_COOLDOWN_SECONDS,
        unroutable_notice=settings.UNROUTABLE_NOTICE,
    )


def _open_store() -> SQLiteCorrelationStore:
    directory = os.path.dirname(settings.DB_PATH)
    if directory:
        os.makedirs(directory, exist_ok=True)
    store = SQLiteCorrelationStore(settings.DB_PATH)
    store.init_db()
    return store


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting protoverse")

    store = _open_store()
    if settings.TTL_DAYS:
        removed = store.cleanup(settings.TTL_DAYS)
        logger.info("Correlation cleanup removed %s mappings", removed)

    registry = BridgeRegistry(build_bridges(settings.BRIDGES_CONFIG))
    logger.info("%s bridges are loaded", len(registry))

    telegram_token = require_env("TELEGRAM_BOT_TOKEN")
    discord_token = require_env("DISCORD_BOT_TOKEN")

    client = build_client()
    client.start(bot_token=telegram_token)
    me = client.loop.run_until_complete(client.get_me())
    logger.info("Logged in to Telegram as @%s", me.username)

    # One HTTP client is shared by the Bot API and Discord adapters.
    http = httpx.AsyncClient(timeout=30)
    processor = MessageProcessor(
        registry=registry,
        source=TelegramSource(client, telegram_token, http),
        destination=DiscordDestination(discord_token, http),
        store=store,
        anti_spam=AntiSpamSet(),
        settings=_relay_settings(),
        bot_user_id=me.id,
    )

    # Handlers stay thin: map the Telethon event, then defer everything to
    # the core processor for consistency and testability.
    @client.on(events.NewMessage(incoming=True))
    async def on_message(event) -> None:
        try:
            update = await build_update(event.message)
            await processor.handle(update)
        except Exception:
            logger.exception("Error while relaying message")

    @client.on(events.MessageEdited(incoming=True))
    async def on_edit(event) -> None:
        try:
            update = await build_update(event.message, edited=True)
            await processor.handle_edit(update)
        except Exception:
            logger.exception("Error while propagating edit")

    @client.on(events.ChatAction())
    async def on_chat_action(event) -> None:
        try:
            update = await build_chat_member_update(event)
            if update is not None:
                await processor.handle_chat_member(update)
        except Exception:
            logger.exception("Error while relaying chat member change")

    logger.info("Client connected. Relaying messages...")
    try:
        client.run_until_disconnected()
    finally:
        client.loop.run_until_complete(http.aclose())


def _cleanup(days: int) -> None:
    _configure_logging()
    removed = _open_store().cleanup(days)
    logging.getLogger(__name__).info("Removed %s mappings older than %s days", removed, days)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="protoverse")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the relay")
    cleanup_parser = subparsers.add_parser(
        "cleanup",
        help="Remove stored message mappings older than the given number of days.",
    )
    cleanup_parser.add_argument("--days", type=int, default=settings.TTL_DAYS or 30)

    args = parser.parse_args(argv)
    if args.command == "cleanup":
        _cleanup(args.days)
        return
    _run()


if __name__ == "__main__":
    main()
