"""Telegram source adapter.

Replies and deletions go through the Telethon client. File links come from
the Bot API's getFile, since Telethon has no notion of downloadable URLs.
"""

from __future__ import annotations

import logging

import httpx

from core.errors import AttachmentTooLarge

LOGGER = logging.getLogger(__name__)

BOT_API_BASE = "https://api.telegram.org"
FILE_TOO_BIG = "file is too big"


class TelegramSource:
    """SourcePort adapter over a Telethon bot client and the Bot API."""

    def __init__(self, client, bot_token: str, http: httpx.AsyncClient) -> None:
        self._client = client
        self._bot_token = bot_token
        self._http = http

    def _endpoint(self, method: str) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"{BOT_API_BASE}/bot{self._bot_token}/{method}"

    async def resolve_file_link(self, file_id: str) -> str:
        """Return a direct download link for ``file_id``."""

        response = await self._http.get(self._endpoint("getFile"), params={"file_id": file_id})
        body = response.json()
        if not body.get("ok"):
            description = body.get("description", "")
            if FILE_TOO_BIG in description:
                raise AttachmentTooLarge(description)
            raise RuntimeError(f"Bot API error {response.status_code}: {description}")
        file_path = body["result"]["file_path"]
        return f"{BOT_API_BASE}/file/bot{self._bot_token}/{file_path}"

    async def reply(self, chat_id: int, message_id: int, text: str, html: bool = False) -> int:
        message = await self._client.send_message(
            chat_id,
            text,
            reply_to=message_id,
            parse_mode="html" if html else "md",
        )
        return message.id

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        await self._client.delete_messages(chat_id, [message_id])
