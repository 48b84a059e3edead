"""Telegram entity -> Discord markdown translation (core domain).

Telegram reports entity offsets and lengths in UTF-16 code units, so every
slice of message text goes through the helpers below instead of plain
``str`` indexing.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Optional, Sequence

from core.bridges import Bridge
from core.models import MessageEntity
from core.ports import DestinationPort

LOGGER = logging.getLogger(__name__)

_WRAPPERS = {
    "bold": ("**", "**"),
    "italic": ("*", "*"),
    "underline": ("__", "__"),
    "strikethrough": ("~~", "~~"),
    "spoiler": ("||", "||"),
    "code": ("`", "`"),
}


def utf16_len(text: str) -> int:
    return len(text.encode("utf-16-le", "surrogatepass")) // 2


def utf16_slice(text: str, start: int, end: Optional[int] = None) -> str:
    encoded = text.encode("utf-16-le", "surrogatepass")
    stop = None if end is None else end * 2
    return encoded[start * 2 : stop].decode("utf-16-le", "surrogatepass")


async def find_member_id(destination: DestinationPort, bridge: Bridge, name: str) -> Optional[str]:
    """Look up a Discord member of the bridge's channel, treating failures as a miss."""

    try:
        return await destination.find_member_by_display_name(bridge.discord.channel_id, name)
    except Exception as err:
        LOGGER.debug("Member lookup for %r failed on bridge %s: %s", name, bridge.name, err)
        return None


async def make_discord_mention(username: str, destination: DestinationPort, bridge: Bridge) -> str:
    """Return ``<@id>`` for a matching Discord member, or the plain username."""

    member_id = await find_member_id(destination, bridge, username)
    if member_id is None:
        return username
    return f"<@{member_id}>"


async def handle_entities(
    text: str,
    entities: Sequence[MessageEntity],
    destination: DestinationPort,
    bridge: Bridge,
) -> str:
    """Render Telegram text plus entities as Discord markdown.

    Formatting entities become paired markers; mentions are replaced by
    Discord mentions when a member with that display name exists. Links,
    hashtags, commands and unknown kinds are left as plain text.
    """

    total = utf16_len(text)
    opens: dict[int, list[str]] = defaultdict(list)
    closes: dict[int, list[str]] = defaultdict(list)
    replacements: dict[int, tuple[int, str]] = {}

    # Outer entities first so that markers nest correctly.
    for entity in sorted(entities, key=lambda e: (e.offset, -e.length)):
        start = entity.offset
        end = min(entity.offset + entity.length, total)
        if start < 0 or start >= end:
            continue

        if entity.type in _WRAPPERS:
            opener, closer = _WRAPPERS[entity.type]
        elif entity.type == "pre":
            opener, closer = f"```{entity.language or ''}\n", "\n```"
        elif entity.type == "text_link" and entity.url:
            opener, closer = "[", f"]({entity.url})"
        elif entity.type in {"mention", "text_mention"}:
            name = utf16_slice(text, start, end)
            if entity.type == "mention":
                name = name.lstrip("@")
            member_id = await find_member_id(destination, bridge, name)
            if member_id is not None and start not in replacements:
                replacements[start] = (end, f"<@{member_id}>")
            continue
        else:
            continue

        opens[start].append(opener)
        closes[end].insert(0, closer)

    points = sorted(
        {0, total, *opens, *closes, *replacements, *(end for end, _ in replacements.values())}
    )
    pieces: list[str] = []
    skip_until = 0
    for index, position in enumerate(points):
        pieces.extend(closes.get(position, ()))
        pieces.extend(opens.get(position, ()))
        if index + 1 == len(points):
            break
        if position in replacements:
            skip_until, mention = replacements[position]
            pieces.append(mention)
            continue
        if position < skip_until:
            continue
        pieces.append(utf16_slice(text, position, points[index + 1]))
    return "".join(pieces)
