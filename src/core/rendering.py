"""Per-bridge rendering of a CrossMessage into a Discord-ready payload.

Keeping formatting here prevents drift between the relay and the edit
propagator, which must produce identical text for the same message.
"""

from __future__ import annotations

from typing import Optional

from core.bridges import Bridge
from core.config import DiscordSettings, TelegramSettings
from core.entities import handle_entities, make_discord_mention
from core.models import Attachment, CrossMessage, RenderedPayload, ReplyTo
from core.ports import DestinationPort

SPOILER = "||"
ELLIPSIS = "…"


def make_header(
    bridge: Bridge,
    sender_name: str,
    original_sender: Optional[str],
    replied_name: Optional[str],
) -> str:
    """Build the header line. A forward takes precedence over a reply."""

    if bridge.telegram.send_usernames:
        if original_sender is not None:
            return f"**{original_sender}** (forwarded by **{sender_name}**)"
        if replied_name is not None:
            return f"**{sender_name}** (in reply to **{replied_name}**)"
        return f"**{sender_name}**"

    if original_sender is not None:
        return f"(forward from **{original_sender}**)"
    if replied_name is not None:
        return f"(in reply to **{replied_name}**)"
    return ""


def make_reply_text(reply_to: ReplyTo, reply_length: int, max_reply_lines: int) -> str:
    """Cut the quoted text down to the character and line budgets.

    Cutting can leave half of a ``||spoiler||`` pair behind; when the source
    had balanced markers the quote gets a closing one. An ellipsis marks any
    quote shorter than its source.
    """

    original = reply_to.text.raw
    quote = "\n".join(original[:reply_length].split("\n")[:max_reply_lines])
    if quote.count(SPOILER) % 2 == 1 and original.count(SPOILER) % 2 == 0:
        quote += SPOILER
    if len(quote) != len(original):
        quote += ELLIPSIS
    return quote


def quote_lines(text: str) -> str:
    return "\n".join(f"> {line}" for line in text.split("\n"))


async def render_payload(
    cross: CrossMessage,
    bridge: Bridge,
    destination: DestinationPort,
    telegram: TelegramSettings,
    discord: DiscordSettings,
) -> RenderedPayload:
    use_first_name = telegram.use_first_name_instead_of_username
    sender_name = cross.sender.display_name(use_first_name) if cross.sender else ""

    original_sender = None
    if cross.forward_from is not None:
        original_sender = cross.forward_from.display_name(use_first_name)

    replied_name = None
    if cross.reply_to is not None:
        if cross.reply_to.is_reply_to_bridge and cross.reply_to.discord_username:
            replied_name = await make_discord_mention(cross.reply_to.discord_username, destination, bridge)
        else:
            replied_name = cross.reply_to.original_from.display_name(use_first_name)

    header = make_header(bridge, sender_name, original_sender, replied_name)

    text = await handle_entities(cross.text.raw, cross.text.entities, destination, bridge)
    if cross.reply_to is not None:
        quote = make_reply_text(cross.reply_to, discord.reply_length, discord.max_reply_lines)
        text = f"{quote_lines(quote)}\n{text}"

    attachment = None
    if cross.file is not None and cross.file.link:
        attachment = Attachment(name=cross.file.name, link=cross.file.link)

    return RenderedPayload(
        bridge=bridge,
        header=header,
        sender_name=sender_name,
        text=text,
        attachment=attachment,
    )
