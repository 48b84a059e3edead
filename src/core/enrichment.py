"""Context enrichment pipeline.

The pipeline turns one InboundUpdate into a CrossMessage by applying an
ordered list of stages to an accumulating, immutable record:
1) Select the message out of the update
2) Route it to bridges (stage built by the processor)
3) Sender identity
4) Reply lineage
5) Forward lineage
6) Text
7) File descriptor
8) File link

Stages return Continue with the updated record, or ShortCircuit to stop the
pipeline. Sender identity must exist before reply/forward resolution, and
the text extraction rules are shared with reply quotes.
"""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Iterable, Optional, Sequence, Tuple, Union

from core.bridges import Bridge, BridgeRegistry
from core.config import TelegramSettings
from core.entities import utf16_len
from core.errors import AttachmentTooLarge
from core.identity import identity_from_chat, identity_from_message, identity_from_user
from core.models import (
    CrossMessage,
    FileDescriptor,
    Identity,
    InboundMessage,
    InboundUpdate,
    MediaFile,
    ReplyTo,
    RichText,
)
from core.ports import SourcePort

LOGGER = logging.getLogger(__name__)

NO_TEXT_PLACEHOLDER = "<no text>"
FILE_TOO_BIG_NOTICE = "<i>File is too big for ProtoVerse to handle</i>"


@dataclass(frozen=True)
class Continue:
    cross: CrossMessage


@dataclass(frozen=True)
class ShortCircuit:
    reason: str
    cross: Optional[CrossMessage] = None


StageResult = Union[Continue, ShortCircuit]


@dataclass(frozen=True)
class EnrichmentEnv:
    """Services and settings the stages may use."""

    source: SourcePort
    telegram: TelegramSettings
    bot_user_id: int


Stage = Callable[[CrossMessage, InboundUpdate, EnrichmentEnv], Awaitable[StageResult]]
BridgeFilter = Callable[[Sequence[Bridge]], Tuple[Bridge, ...]]


def text_from_message(message: InboundMessage, send_emoji_with_stickers: bool) -> RichText:
    """Pick exactly one text source: text, caption, sticker emoji, location URL, or nothing."""

    if message.text is not None:
        return RichText(message.text, tuple(message.entities))
    if message.caption is not None:
        return RichText(message.caption, tuple(message.caption_entities))
    if message.sticker is not None:
        emoji = message.sticker.emoji if send_emoji_with_stickers else None
        return RichText(emoji or "")
    if message.location is not None:
        lat = message.location.latitude
        lon = message.location.longitude
        return RichText(f"https://maps.google.com/maps?q={lat},{lon}&ll={lat},{lon}&z=16")
    return RichText()


def strip_relay_header(text: RichText) -> tuple[str, RichText]:
    """Split a relayed message into (discord username, remaining text).

    Messages relayed from Discord start with the author's name on its own
    line. The removed prefix is the name plus the line break, so every kept
    entity moves left by that many UTF-16 units; entities inside the prefix
    (the bold name) are dropped.
    """

    username, _, rest = text.raw.partition("\n")
    shift = utf16_len(username) + 1
    entities = tuple(
        replace(entity, offset=entity.offset - shift)
        for entity in text.entities
        if entity.offset >= shift
    )
    return username, RichText(rest, entities)


def _extension(mime_type: Optional[str]) -> str:
    if mime_type:
        guessed = mimetypes.guess_extension(mime_type, strict=False)
        if guessed:
            return guessed.lstrip(".")
    return "bin"


def file_from_message(message: InboundMessage) -> Optional[FileDescriptor]:
    """Pick the first attached file in audio/document/photo/sticker/video/voice order."""

    if message.audio is not None:
        audio = message.audio
        if audio.title:
            name = f"{audio.title}.{_extension(audio.mime_type)}"
        else:
            name = audio.file_name or f"audio.{_extension(audio.mime_type)}"
        return FileDescriptor("audio", audio.file_id, name)
    if message.document is not None:
        document = message.document
        name = document.file_name or f"document.{_extension(document.mime_type)}"
        return FileDescriptor("document", document.file_id, name)
    if message.photo:
        # Telegram re-encodes photos as JPEG whatever the upload format was.
        return FileDescriptor("photo", message.photo[-1].file_id, "photo.jpg")
    if message.sticker is not None:
        sticker = message.sticker
        file_id = sticker.thumb_file_id if sticker.is_animated else sticker.file_id
        if file_id is None:
            return None
        return FileDescriptor("sticker", file_id, "sticker.webp")
    if message.video is not None:
        return _named_media("video", message.video)
    if message.voice is not None:
        return _named_media("voice", message.voice)
    return None


def _named_media(kind: str, media: MediaFile) -> FileDescriptor:
    return FileDescriptor(kind, media.file_id, f"{kind}.{_extension(media.mime_type)}")


async def select_message(cross: CrossMessage, update: InboundUpdate, env: EnrichmentEnv) -> StageResult:
    candidates = (
        (update.message, False),
        (update.edited_message, True),
        (update.channel_post, False),
        (update.edited_channel_post, True),
    )
    for message, is_edit in candidates:
        if message is not None:
            return Continue(
                replace(
                    cross,
                    message=message,
                    message_id=message.message_id,
                    chat_id=message.chat.id,
                    is_edit=is_edit,
                )
            )
    return ShortCircuit("empty", cross)


def route(registry: BridgeRegistry, filters: Iterable[BridgeFilter]) -> Stage:
    """Build a stage that attaches the bridges left after applying ``filters``."""

    filters = tuple(filters)

    async def route_stage(cross: CrossMessage, update: InboundUpdate, env: EnrichmentEnv) -> StageResult:
        bridges = registry.bridges_for(cross.chat_id)
        for bridge_filter in filters:
            bridges = bridge_filter(bridges)
        if not bridges:
            return ShortCircuit("unroutable", cross)
        return Continue(replace(cross, bridges=tuple(bridges)))

    return route_stage


async def add_sender(cross: CrossMessage, update: InboundUpdate, env: EnrichmentEnv) -> StageResult:
    return Continue(replace(cross, sender=identity_from_message(cross.message)))


async def add_reply_to(cross: CrossMessage, update: InboundUpdate, env: EnrichmentEnv) -> StageResult:
    replied = cross.message.reply_to_message
    if replied is None:
        return Continue(cross)

    is_reply_to_bridge = replied.from_user is not None and replied.from_user.id == env.bot_user_id
    text = text_from_message(replied, env.telegram.send_emoji_with_stickers)
    discord_username = None
    if is_reply_to_bridge:
        discord_username, text = strip_relay_header(text)

    if not text.raw:
        text = replace(text, raw=NO_TEXT_PLACEHOLDER)

    reply_to = ReplyTo(
        original_from=identity_from_message(replied),
        text=text,
        is_reply_to_bridge=is_reply_to_bridge,
        discord_username=discord_username,
    )
    return Continue(replace(cross, reply_to=reply_to))


async def add_forward_from(cross: CrossMessage, update: InboundUpdate, env: EnrichmentEnv) -> StageResult:
    message = cross.message
    forward_from: Optional[Identity] = None
    if message.forward_from is not None:
        forward_from = identity_from_user(message.forward_from)
    elif message.forward_from_chat is not None:
        forward_from = identity_from_chat(message.forward_from_chat)
    elif message.forward_sender_name:
        # Users hiding their account in forwards only expose a name.
        forward_from = Identity(first_name=message.forward_sender_name)
    if forward_from is None:
        return Continue(cross)
    return Continue(replace(cross, forward_from=forward_from))


async def add_text(cross: CrossMessage, update: InboundUpdate, env: EnrichmentEnv) -> StageResult:
    text = text_from_message(cross.message, env.telegram.send_emoji_with_stickers)
    return Continue(replace(cross, text=text))


async def add_file(cross: CrossMessage, update: InboundUpdate, env: EnrichmentEnv) -> StageResult:
    return Continue(replace(cross, file=file_from_message(cross.message)))


async def add_file_link(cross: CrossMessage, update: InboundUpdate, env: EnrichmentEnv) -> StageResult:
    if cross.file is None:
        return Continue(cross)

    try:
        link = await env.source.resolve_file_link(cross.file.file_id)
    except AttachmentTooLarge:
        LOGGER.info("Skipping oversized %s in chat %s", cross.file.kind, cross.chat_id)
        try:
            await env.source.reply(cross.chat_id, cross.message_id, FILE_TOO_BIG_NOTICE, html=True)
        except Exception as err:
            LOGGER.warning("Could not tell chat %s about an oversized file: %s", cross.chat_id, err)
        return Continue(replace(cross, file=None))
    return Continue(replace(cross, file=replace(cross.file, link=link)))


ENRICHMENT_STAGES: Tuple[Stage, ...] = (
    add_sender,
    add_reply_to,
    add_forward_from,
    add_text,
    add_file,
    add_file_link,
)

# Edits never change the attachment on Discord, so the link is not resolved again.
EDIT_ENRICHMENT_STAGES: Tuple[Stage, ...] = (
    add_sender,
    add_reply_to,
    add_forward_from,
    add_text,
    add_file,
)


async def run_stages(update: InboundUpdate, env: EnrichmentEnv, stages: Iterable[Stage]) -> StageResult:
    """Apply stages in order, stopping at the first ShortCircuit."""

    cross = CrossMessage()
    for stage in stages:
        result = await stage(cross, update, env)
        if isinstance(result, ShortCircuit):
            return result
        cross = result.cross
    return Continue(cross)
