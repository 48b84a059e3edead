from __future__ import annotations

import asyncio

from telethon import utils
from telethon.tl import types

from adapters.telegram_mapper import build_chat_member_update, build_update, map_entities
from core.models import Location, MediaFile, MessageEntity, TelegramUser

CHAT_ID = -100123


class DummyChat:
    def __init__(self, title: str = "Team chat") -> None:
        self.title = title


class DummyForward:
    def __init__(self, sender=None, chat=None, from_name: "str | None" = None) -> None:
        self._sender = sender
        self._chat = chat
        self.chat_id = None
        self.from_name = from_name

    async def get_sender(self):
        return self._sender

    async def get_chat(self):
        return self._chat


class DummyMessage:
    def __init__(
        self,
        *,
        message_id: int,
        text: str,
        sender=None,
        entities=None,
        reply: "DummyMessage | None" = None,
        post: bool = False,
        forward: "DummyForward | None" = None,
        media=None,
    ) -> None:
        # Media accessors (photo, document, file, ...) come from a real Telethon message.
        self._telethon = types.Message(
            id=message_id,
            peer_id=types.PeerChannel(channel_id=123),
            message=text,
            media=media,
        )
        self.id = message_id
        self.chat_id = CHAT_ID
        self.message = text
        self.entities = entities
        self.media = media
        self.post = post
        self.forward = forward
        self.is_reply = reply is not None
        self._sender = sender
        self._reply = reply

    async def get_chat(self):
        return DummyChat()

    async def get_sender(self):
        return self._sender

    async def get_reply_message(self):
        return self._reply

    def __getattr__(self, name: str):
        return getattr(self._telethon, name)


class DummyActionMessage:
    def __init__(self, message_id: int) -> None:
        self.id = message_id


class DummyChatAction:
    def __init__(self, *, joined=(), left=None) -> None:
        self.chat_id = CHAT_ID
        self.user_joined = bool(joined)
        self.user_added = False
        self.user_left = left is not None
        self.user_kicked = False
        self.action_message = DummyActionMessage(77)
        self._joined = list(joined)
        self._left = left

    async def get_users(self):
        return self._joined

    async def get_user(self):
        return self._left

    async def get_chat(self):
        return DummyChat()


def _user(user_id: int, first_name: str, username: "str | None" = None, bot: bool = False) -> types.User:
    return types.User(id=user_id, first_name=first_name, username=username, bot=bot)


def test_map_entities_keeps_known_kinds() -> None:
    entities = [
        types.MessageEntityBold(offset=0, length=5),
        types.MessageEntityTextUrl(offset=6, length=4, url="https://x.dev"),
        types.MessageEntityPre(offset=11, length=3, language="python"),
        types.MessageEntityCashtag(offset=15, length=4),
    ]

    assert map_entities(entities) == (
        MessageEntity("bold", 0, 5),
        MessageEntity("text_link", 6, 4, url="https://x.dev"),
        MessageEntity("pre", 11, 3, language="python"),
    )
    assert map_entities(None) == ()


def test_build_update_maps_text_message() -> None:
    message = DummyMessage(
        message_id=10,
        text="hello world",
        sender=_user(1, "Alice"),
        entities=[types.MessageEntityItalic(offset=6, length=5)],
    )

    update = asyncio.run(build_update(message))

    inbound = update.message
    assert update.edited_message is None
    assert inbound.message_id == 10
    assert inbound.chat.id == CHAT_ID
    assert inbound.chat.title == "Team chat"
    assert inbound.from_user.first_name == "Alice"
    assert inbound.text == "hello world"
    assert inbound.entities == (MessageEntity("italic", 6, 5),)
    assert inbound.caption is None


def test_reply_is_resolved_one_level_deep() -> None:
    grandparent = DummyMessage(message_id=1, text="first", sender=_user(2, "Robert", "bob"))
    parent = DummyMessage(message_id=2, text="Bob\nsecond", sender=_user(999, "ProtoVerse", bot=True), reply=grandparent)
    message = DummyMessage(message_id=3, text="third", sender=_user(1, "Alice"), reply=parent)

    inbound = asyncio.run(build_update(message)).message

    assert inbound.reply_to_message.message_id == 2
    assert inbound.reply_to_message.from_user == TelegramUser(id=999, first_name="ProtoVerse")
    assert inbound.reply_to_message.reply_to_message is None


def test_edits_and_channel_posts_use_their_update_fields() -> None:
    edited = asyncio.run(build_update(DummyMessage(message_id=4, text="fixed", sender=_user(1, "Alice")), edited=True))
    post = asyncio.run(build_update(DummyMessage(message_id=5, text="news", post=True)))
    edited_post = asyncio.run(build_update(DummyMessage(message_id=6, text="news!", post=True), edited=True))

    assert edited.edited_message.text == "fixed"
    assert post.channel_post.text == "news"
    assert post.channel_post.from_user is None
    assert edited_post.edited_channel_post.message_id == 6


def test_forward_lineage_is_mapped() -> None:
    from_user = DummyMessage(message_id=7, text="fw", forward=DummyForward(sender=_user(2, "Robert", "bob")))
    hidden = DummyMessage(message_id=8, text="fw", forward=DummyForward(from_name="Mystery"))

    assert asyncio.run(build_update(from_user)).message.forward_from.username == "bob"
    hidden_inbound = asyncio.run(build_update(hidden)).message
    assert hidden_inbound.forward_from is None
    assert hidden_inbound.forward_sender_name == "Mystery"


def test_chat_member_updates() -> None:
    joined = asyncio.run(build_chat_member_update(DummyChatAction(joined=[_user(2, "Robert", "bob")])))
    left = asyncio.run(build_chat_member_update(DummyChatAction(left=_user(1, "Alice"))))

    assert joined.message.message_id == 77
    assert [user.username for user in joined.message.new_chat_members] == ["bob"]
    assert left.message.left_chat_member.first_name == "Alice"
    assert left.message.new_chat_members == ()


def _document(mime_type: str, *attributes) -> types.Document:
    return types.Document(
        id=4242,
        access_hash=77,
        file_reference=b"",
        date=None,
        mime_type=mime_type,
        size=2048,
        dc_id=2,
        attributes=list(attributes),
    )


def _photo() -> types.Photo:
    return types.Photo(
        id=1717,
        access_hash=88,
        file_reference=b"",
        date=None,
        sizes=[types.PhotoSize(type="x", w=800, h=600, size=50_000)],
        dc_id=2,
    )


def _media_message(media, text: str = "") -> DummyMessage:
    return DummyMessage(message_id=20, text=text, sender=_user(1, "Alice"), media=media)


def _inbound(message: DummyMessage):
    return asyncio.run(build_update(message)).message


def test_photo_keeps_caption_without_a_file() -> None:
    inbound = _inbound(_media_message(types.MessageMediaPhoto(photo=_photo()), "look"))

    assert inbound.caption == "look"
    assert inbound.text is None
    assert inbound.photo == ()


def test_link_preview_is_plain_text() -> None:
    webpage = types.WebPage(
        id=1,
        url="https://example.com",
        display_url="example.com",
        hash=0,
        photo=_photo(),
        document=_document("application/pdf", types.DocumentAttributeFilename(file_name="page.pdf")),
    )
    message = DummyMessage(
        message_id=21,
        text="see https://example.com",
        sender=_user(1, "Alice"),
        entities=[types.MessageEntityUrl(offset=4, length=19)],
        media=types.MessageMediaWebPage(webpage=webpage),
    )

    inbound = _inbound(message)

    assert inbound.text == "see https://example.com"
    assert inbound.entities == (MessageEntity("url", 4, 19),)
    assert inbound.caption is None
    assert inbound.photo == ()
    assert inbound.document is None


def test_document_with_caption() -> None:
    document = _document("application/pdf", types.DocumentAttributeFilename(file_name="report.pdf"))
    message = DummyMessage(
        message_id=22,
        text="q3 numbers",
        sender=_user(1, "Alice"),
        entities=[types.MessageEntityBold(offset=0, length=2)],
        media=types.MessageMediaDocument(document=document),
    )

    inbound = _inbound(message)

    assert inbound.document == MediaFile(
        file_id=utils.pack_bot_file_id(document),
        mime_type="application/pdf",
        file_name="report.pdf",
    )
    assert inbound.text is None
    assert inbound.caption == "q3 numbers"
    assert inbound.caption_entities == (MessageEntity("bold", 0, 2),)


def test_document_without_caption_has_no_text() -> None:
    document = _document("application/zip", types.DocumentAttributeFilename(file_name="logs.zip"))

    inbound = _inbound(_media_message(types.MessageMediaDocument(document=document)))

    assert inbound.document.file_name == "logs.zip"
    assert inbound.text is None
    assert inbound.caption is None


def test_gif_is_relayed_as_document() -> None:
    gif = _document(
        "video/mp4",
        types.DocumentAttributeVideo(duration=1.5, w=320, h=240),
        types.DocumentAttributeAnimated(),
    )

    inbound = _inbound(_media_message(types.MessageMediaDocument(document=gif)))

    assert inbound.document.file_id == utils.pack_bot_file_id(gif)
    assert inbound.document.mime_type == "video/mp4"
    assert inbound.video is None


def test_audio_carries_its_title() -> None:
    song = _document(
        "audio/mpeg",
        types.DocumentAttributeAudio(duration=180, title="Anthem", performer="Band"),
        types.DocumentAttributeFilename(file_name="anthem.mp3"),
    )

    inbound = _inbound(_media_message(types.MessageMediaDocument(document=song)))

    assert inbound.audio == MediaFile(
        file_id=utils.pack_bot_file_id(song),
        mime_type="audio/mpeg",
        file_name="anthem.mp3",
        title="Anthem",
    )
    assert inbound.voice is None
    assert inbound.document is None


def test_voice_note() -> None:
    voice = _document("audio/ogg", types.DocumentAttributeAudio(duration=4, voice=True))

    inbound = _inbound(_media_message(types.MessageMediaDocument(document=voice, voice=True)))

    assert inbound.voice.file_id == utils.pack_bot_file_id(voice)
    assert inbound.voice.mime_type == "audio/ogg"
    assert inbound.audio is None


def test_video_with_caption() -> None:
    video = _document(
        "video/mp4",
        types.DocumentAttributeVideo(duration=12.0, w=1280, h=720),
        types.DocumentAttributeFilename(file_name="clip.mp4"),
    )

    inbound = _inbound(_media_message(types.MessageMediaDocument(document=video), "watch"))

    assert inbound.video.file_name == "clip.mp4"
    assert inbound.caption == "watch"
    assert inbound.document is None


def test_video_note_is_not_relayed_as_a_file() -> None:
    round_video = _document("video/mp4", types.DocumentAttributeVideo(duration=5.0, w=240, h=240, round_message=True))

    inbound = _inbound(_media_message(types.MessageMediaDocument(document=round_video, round=True)))

    assert inbound.video is None
    assert inbound.document is None
    assert inbound.text is None


def test_static_sticker() -> None:
    sticker = _document(
        "image/webp",
        types.DocumentAttributeSticker(alt="🔥", stickerset=types.InputStickerSetEmpty()),
        types.DocumentAttributeImageSize(w=512, h=512),
    )

    inbound = _inbound(_media_message(types.MessageMediaDocument(document=sticker)))

    assert inbound.sticker.file_id == utils.pack_bot_file_id(sticker)
    assert inbound.sticker.emoji == "🔥"
    assert inbound.sticker.is_animated is False
    assert inbound.sticker.thumb_file_id is None
    assert inbound.document is None
    assert inbound.caption is None


def test_animated_sticker() -> None:
    sticker = _document(
        "application/x-tgsticker",
        types.DocumentAttributeSticker(alt="🎉", stickerset=types.InputStickerSetEmpty()),
    )

    inbound = _inbound(_media_message(types.MessageMediaDocument(document=sticker)))

    assert inbound.sticker.is_animated is True
    assert inbound.sticker.emoji == "🎉"
    assert inbound.sticker.thumb_file_id is None


def test_location() -> None:
    geo = types.MessageMediaGeo(geo=types.GeoPoint(long=13.4, lat=52.52, access_hash=0))

    inbound = _inbound(_media_message(geo))

    assert inbound.location == Location(latitude=52.52, longitude=13.4)
    assert inbound.text is None
    assert inbound.caption is None
