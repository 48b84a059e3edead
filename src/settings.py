"""Static configuration for protoverse.

All user-editable settings (bridges, rendering, relay, database, logging)
live in a single JSON file for quick edits without touching Python. Secrets
stay in the environment (.env).
"""

import json
import os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Bridges and relay settings are loaded from config.json so users can add
# bridges or tweak rendering without editing code.
CONFIG_PATH = os.getenv("PROTOVERSE_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Bridges are compiled by core.bridges.build_bridges at startup.
BRIDGES_CONFIG = _CONFIG.get("bridges", [])

# Telegram-side interpretation of incoming messages.
_telegram = _CONFIG.get("telegram", {})
USE_FIRST_NAME_INSTEAD_OF_USERNAME = bool(_telegram.get("use_first_name_instead_of_username", False))
SEND_EMOJI_WITH_STICKERS = bool(_telegram.get("send_emoji_with_stickers", True))

# Discord-side limits and reply quoting budgets.
_discord = _CONFIG.get("discord", {})
REPLY_LENGTH = int(_discord.get("reply_length", 100))
MAX_REPLY_LINES = int(_discord.get("max_reply_lines", 2))
MESSAGE_LIMIT = int(_discord.get("message_limit", 2000))

# Relay behaviour shared by the executor, the propagator and the notices.
_relay = _CONFIG.get("relay", {})
WATERMARK = _relay.get("watermark", "")
ANTI_SPAM_COOLDOWN_SECONDS = float(_relay.get("anti_spam_cooldown_seconds", 60))
UNROUTABLE_NOTICE = _relay.get(
    "unroutable_notice",
    "This is a ProtoVerse bridge bot. This chat is not bridged anywhere.",
)

# Where to store the SQLite correlation database, and how long to keep mappings.
# - TTL_DAYS: 0 keeps every mapping forever
_database = _CONFIG.get("database", {})
DB_PATH = _database.get("path", "data/protoverse.db")
if not os.path.isabs(DB_PATH):
    DB_PATH = os.path.join(PROJECT_ROOT, DB_PATH)
TTL_DAYS = int(_database.get("ttl_days", 0))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
