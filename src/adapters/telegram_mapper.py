"""Telegram-to-core message mapping adapter.

This keeps Telethon-specific details out of the core pipeline. Telethon
messages are translated into the Bot-API-shaped InboundMessage the core
works with; document ids are packed into Bot API file ids so that they can
be resolved through getFile.
"""

from __future__ import annotations

import logging
from typing import Optional

from telethon import utils
from telethon.tl import types
from telethon.tl.custom import Message

from core.models import (
    InboundMessage,
    InboundUpdate,
    Location,
    MediaFile,
    MessageEntity,
    Sticker,
    TelegramChat,
    TelegramUser,
)

LOGGER = logging.getLogger(__name__)

_ENTITY_TYPES = {
    types.MessageEntityBold: "bold",
    types.MessageEntityItalic: "italic",
    types.MessageEntityUnderline: "underline",
    types.MessageEntityStrike: "strikethrough",
    types.MessageEntitySpoiler: "spoiler",
    types.MessageEntityCode: "code",
    types.MessageEntityPre: "pre",
    types.MessageEntityTextUrl: "text_link",
    types.MessageEntityMention: "mention",
    types.MessageEntityMentionName: "text_mention",
    types.MessageEntityUrl: "url",
    types.MessageEntityEmail: "email",
    types.MessageEntityHashtag: "hashtag",
    types.MessageEntityBotCommand: "bot_command",
}

ANIMATED_STICKER_MIME = "application/x-tgsticker"


def map_entities(entities) -> tuple[MessageEntity, ...]:
    mapped = []
    for entity in entities or ():
        kind = _ENTITY_TYPES.get(type(entity))
        if kind is None:
            continue
        mapped.append(
            MessageEntity(
                type=kind,
                offset=entity.offset,
                length=entity.length,
                url=getattr(entity, "url", None),
                language=getattr(entity, "language", None) or None,
            )
        )
    return tuple(mapped)


def user_from_entity(entity) -> Optional[TelegramUser]:
    if not isinstance(entity, types.User):
        return None
    return TelegramUser(
        id=entity.id,
        first_name=entity.first_name or "",
        last_name=entity.last_name,
        username=entity.username,
    )


def chat_from_entity(entity, chat_id: int) -> TelegramChat:
    """Build a TelegramChat; ``chat_id`` is the marked (Bot API style) id."""

    if isinstance(entity, types.Channel):
        kind = "supergroup" if getattr(entity, "megagroup", False) else "channel"
        return TelegramChat(id=chat_id, title=entity.title, username=entity.username, type=kind)
    if isinstance(entity, types.User):
        return TelegramChat(id=chat_id, title=entity.first_name, username=entity.username, type="private")
    return TelegramChat(id=chat_id, title=getattr(entity, "title", None), type="group")


def _media_file(message: Message, media) -> MediaFile:
    file = message.file
    return MediaFile(
        file_id=utils.pack_bot_file_id(media),
        mime_type=getattr(file, "mime_type", None),
        file_name=getattr(file, "name", None),
        title=getattr(file, "title", None),
    )


def has_attached_media(message: Message) -> bool:
    """True when the message carries media of its own.

    A link preview is media to Telethon, but its photo or document belongs
    to the linked page, so such messages are plain text.
    """

    media = getattr(message, "media", None)
    return media is not None and not isinstance(media, types.MessageMediaWebPage)


def _media_fields(message: Message) -> dict:
    """Map Telethon media onto the single Bot API field that describes it."""

    if not has_attached_media(message):
        return {}

    if message.photo is not None:
        # Photo sizes of the current layer carry no file location, so no Bot
        # API file id can be packed; the caption is relayed without the photo.
        LOGGER.debug("Photo in message %s has no Bot API file id", message.id)
        return {}
    if message.sticker is not None:
        file = message.file
        is_animated = getattr(file, "mime_type", None) == ANIMATED_STICKER_MIME
        return {
            "sticker": Sticker(
                file_id=utils.pack_bot_file_id(message.sticker),
                emoji=getattr(file, "emoji", None),
                is_animated=is_animated,
                # Telethon cannot pack thumbnail ids, so animated stickers carry no file.
                thumb_file_id=None,
            )
        }
    if message.voice is not None:
        return {"voice": _media_file(message, message.voice)}
    if message.audio is not None:
        return {"audio": _media_file(message, message.audio)}
    if message.video_note is not None:
        return {}
    if message.gif is not None:
        return {"document": _media_file(message, message.gif)}
    if message.video is not None:
        return {"video": _media_file(message, message.video)}
    if message.document is not None:
        return {"document": _media_file(message, message.document)}
    if message.geo is not None:
        return {"location": Location(latitude=message.geo.lat, longitude=message.geo.long)}
    return {}


async def _forward_fields(message: Message) -> dict:
    forward = getattr(message, "forward", None)
    if forward is None:
        return {}

    sender = await forward.get_sender()
    forward_user = user_from_entity(sender)
    if forward_user is not None:
        return {"forward_from": forward_user}

    chat = await forward.get_chat()
    if chat is not None and not isinstance(chat, types.User):
        return {"forward_from_chat": chat_from_entity(chat, forward.chat_id)}
    return {"forward_sender_name": getattr(forward, "from_name", None)}


async def build_message(message: Message, with_reply: bool = True) -> InboundMessage:
    """Build a core InboundMessage from a Telethon Message.

    Replies are resolved one level deep; the quoted message itself is built
    without its own reply.
    """

    chat = chat_from_entity(await message.get_chat(), message.chat_id)
    sender = await message.get_sender()
    from_user = user_from_entity(sender)
    sender_chat = None
    if from_user is None and sender is not None:
        sender_chat = chat_from_entity(sender, utils.get_peer_id(sender))

    raw_text = message.message or ""
    entities = map_entities(message.entities)
    media = _media_fields(message)

    fields: dict = {}
    if not has_attached_media(message):
        fields["text"] = raw_text
        fields["entities"] = entities
    elif raw_text and "location" not in media and "sticker" not in media:
        # Telegram stores captions in the message text.
        fields["caption"] = raw_text
        fields["caption_entities"] = entities

    reply_to_message = None
    if with_reply and getattr(message, "is_reply", False):
        replied = await message.get_reply_message()
        if replied is not None:
            reply_to_message = await build_message(replied, with_reply=False)

    return InboundMessage(
        message_id=message.id,
        chat=chat,
        from_user=from_user,
        sender_chat=sender_chat,
        reply_to_message=reply_to_message,
        **fields,
        **media,
        **(await _forward_fields(message)),
    )


async def build_update(message: Message, edited: bool = False) -> InboundUpdate:
    """Wrap a Telethon message into the update kind it represents."""

    inbound = await build_message(message)
    if getattr(message, "post", False):
        if edited:
            return InboundUpdate(edited_channel_post=inbound)
        return InboundUpdate(channel_post=inbound)
    if edited:
        return InboundUpdate(edited_message=inbound)
    return InboundUpdate(message=inbound)


async def build_chat_member_update(event) -> Optional[InboundUpdate]:
    """Translate a Telethon ChatAction event into a join/leave update."""

    fields: dict = {}
    if event.user_joined or event.user_added:
        users = await event.get_users()
        fields["new_chat_members"] = tuple(
            user for user in (user_from_entity(entity) for entity in users or ()) if user is not None
        )
    elif event.user_left or event.user_kicked:
        fields["left_chat_member"] = user_from_entity(await event.get_user())
    else:
        return None

    action_message = getattr(event, "action_message", None)
    chat = chat_from_entity(await event.get_chat(), event.chat_id)
    return InboundUpdate(
        message=InboundMessage(
            message_id=action_message.id if action_message is not None else 0,
            chat=chat,
            **fields,
        )
    )
