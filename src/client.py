"""Telegram client factory for protoverse.

The relay logs in as a bot. MTProto still needs an application API_ID and
API_HASH; the bot token itself is passed to ``client.start`` by the app.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient


def build_client() -> TelegramClient:
    """Create the Telethon client the app starts with TELEGRAM_BOT_TOKEN.

    API_ID and API_HASH are read through python-dotenv. The session file
    (SESSION_NAME, default "protoverse") caches the bot authorization so
    restarts do not log in again.
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    session_name = os.getenv("SESSION_NAME", "protoverse")

    # Without both values Telethon cannot connect at all.
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")

    logging.getLogger(__name__).info("Initializing Telegram client")

    return TelegramClient(session_name, int(api_id), api_hash)


def require_env(name: str) -> str:
    """Return a required secret from the environment."""

    load_dotenv()
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing {name} in environment")
    return value
