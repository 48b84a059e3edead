"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types. The inbound types mirror the
Telegram Bot API message shape; the adapters fill them from Telethon objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from core.bridges import Bridge


@dataclass(frozen=True)
class TelegramUser:
    id: int
    first_name: str
    last_name: Optional[str] = None
    username: Optional[str] = None


@dataclass(frozen=True)
class TelegramChat:
    id: int
    title: Optional[str] = None
    username: Optional[str] = None
    type: str = "group"


@dataclass(frozen=True)
class MessageEntity:
    """A formatting span. Offsets and lengths are UTF-16 code units."""

    type: str
    offset: int
    length: int
    url: Optional[str] = None
    language: Optional[str] = None


@dataclass(frozen=True)
class MediaFile:
    file_id: str
    mime_type: Optional[str] = None
    file_name: Optional[str] = None
    title: Optional[str] = None


@dataclass(frozen=True)
class Sticker:
    file_id: str
    emoji: Optional[str] = None
    is_animated: bool = False
    thumb_file_id: Optional[str] = None


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class InboundMessage:
    """A single Telegram message, independent of the client library."""

    message_id: int
    chat: TelegramChat
    from_user: Optional[TelegramUser] = None
    sender_chat: Optional[TelegramChat] = None
    text: Optional[str] = None
    entities: Tuple[MessageEntity, ...] = ()
    caption: Optional[str] = None
    caption_entities: Tuple[MessageEntity, ...] = ()
    sticker: Optional[Sticker] = None
    location: Optional[Location] = None
    audio: Optional[MediaFile] = None
    document: Optional[MediaFile] = None
    # Sizes in ascending resolution, like the Bot API.
    photo: Tuple[MediaFile, ...] = ()
    video: Optional[MediaFile] = None
    voice: Optional[MediaFile] = None
    reply_to_message: Optional["InboundMessage"] = None
    forward_from: Optional[TelegramUser] = None
    forward_from_chat: Optional[TelegramChat] = None
    forward_sender_name: Optional[str] = None
    new_chat_members: Tuple[TelegramUser, ...] = ()
    left_chat_member: Optional[TelegramUser] = None


@dataclass(frozen=True)
class InboundUpdate:
    """One update from Telegram. At most one field is expected to be set."""

    message: Optional[InboundMessage] = None
    edited_message: Optional[InboundMessage] = None
    channel_post: Optional[InboundMessage] = None
    edited_channel_post: Optional[InboundMessage] = None


@dataclass(frozen=True)
class Identity:
    """Who sent (or originally wrote) a message."""

    first_name: str
    last_name: Optional[str] = None
    username: Optional[str] = None
    user_id: Optional[int] = None

    def display_name(self, use_first_name: bool) -> str:
        if use_first_name or not self.username:
            return self.first_name
        return self.username


@dataclass(frozen=True)
class RichText:
    raw: str = ""
    entities: Tuple[MessageEntity, ...] = ()


@dataclass(frozen=True)
class FileDescriptor:
    kind: str
    file_id: str
    name: str
    link: Optional[str] = None


@dataclass(frozen=True)
class ReplyTo:
    original_from: Identity
    text: RichText
    is_reply_to_bridge: bool = False
    # First line of a quoted relay: the Discord user it was relayed for.
    discord_username: Optional[str] = None


@dataclass(frozen=True)
class CrossMessage:
    """Platform-neutral view of one inbound message, built by the enrichment stages."""

    message: Optional[InboundMessage] = None
    message_id: Optional[int] = None
    chat_id: Optional[int] = None
    is_edit: bool = False
    bridges: Tuple[Bridge, ...] = ()
    sender: Optional[Identity] = None
    reply_to: Optional[ReplyTo] = None
    forward_from: Optional[Identity] = None
    text: RichText = field(default_factory=RichText)
    file: Optional[FileDescriptor] = None


@dataclass(frozen=True)
class Attachment:
    name: str
    link: str


@dataclass(frozen=True)
class RenderedPayload:
    """Discord-ready output for one bridge."""

    bridge: Bridge
    header: str
    sender_name: str
    text: str
    attachment: Optional[Attachment] = None

    @property
    def message_text(self) -> str:
        return f"{self.header}\n{self.text}"
