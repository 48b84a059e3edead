"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class TelegramSettings:
    """How Telegram-side content is interpreted."""

    use_first_name_instead_of_username: bool = False
    send_emoji_with_stickers: bool = True


@dataclass(frozen=True)
class DiscordSettings:
    """Discord-side limits and reply rendering budgets."""

    reply_length: int = 100
    max_reply_lines: int = 2
    message_limit: int = 2000


@dataclass(frozen=True)
class RelaySettings:
    """Settings shared by the relay, the propagator and the processor."""

    telegram: TelegramSettings = field(default_factory=TelegramSettings)
    discord: DiscordSettings = field(default_factory=DiscordSettings)
    watermark: str = ""
    anti_spam_cooldown: float = 60.0
    unroutable_notice: str = "This is a ProtoVerse bridge bot. This chat is not bridged anywhere."
