"""Helpers for turning Telegram users and chats into sender identities."""

from __future__ import annotations

from core.models import Identity, InboundMessage, TelegramChat, TelegramUser


def identity_from_user(user: TelegramUser) -> Identity:
    return Identity(
        first_name=user.first_name,
        last_name=user.last_name,
        username=user.username,
        user_id=user.id,
    )


def identity_from_chat(chat: TelegramChat) -> Identity:
    """Channels and anonymous admins speak with the chat's title."""

    return Identity(first_name=chat.title or "", username=chat.username, user_id=chat.id)


def identity_from_message(message: InboundMessage) -> Identity:
    if message.from_user is not None:
        return identity_from_user(message.from_user)
    if message.sender_chat is not None:
        return identity_from_chat(message.sender_chat)
    return identity_from_chat(message.chat)
