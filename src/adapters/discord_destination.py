"""Discord REST destination adapter.

Talks to the Discord HTTP API directly; no gateway connection is needed to
send, edit and delete messages or to search guild members.
"""

from __future__ import annotations

import json
import logging
from typing import Optional, Sequence

import httpx

from core.errors import AttachmentTooLarge, DestinationSendFailure
from core.models import Attachment

LOGGER = logging.getLogger(__name__)

DISCORD_API_BASE = "https://discord.com/api/v10"
REQUEST_ENTITY_TOO_LARGE = 413
# Discord's bulk-delete endpoint accepts between 2 and 100 ids.
BULK_DELETE_MAX = 100


def _member_names(member: dict) -> set[str]:
    user = member.get("user") or {}
    return {name for name in (member.get("nick"), user.get("global_name"), user.get("username")) if name}


class DiscordDestination:
    """DestinationPort adapter over the Discord REST API."""

    def __init__(self, bot_token: str, http: httpx.AsyncClient) -> None:
        self._headers = {"Authorization": f"Bot {bot_token}"}
        self._http = http
        self._guild_by_channel: dict[str, str] = {}

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        response = await self._http.request(
            method,
            f"{DISCORD_API_BASE}{path}",
            headers=self._headers,
            **kwargs,
        )
        if response.status_code == REQUEST_ENTITY_TOO_LARGE:
            raise AttachmentTooLarge("Request entity too large")
        if response.status_code >= 400:
            raise DestinationSendFailure(f"Discord API error {response.status_code}: {response.text[:200]}")
        return response

    async def send(self, channel_id: str, text: str, attachment: Optional[Attachment] = None) -> str:
        """Send a message, uploading the attachment when one is given."""

        path = f"/channels/{channel_id}/messages"
        if attachment is None:
            response = await self._request("POST", path, json={"content": text})
            return str(response.json()["id"])

        download = await self._http.get(attachment.link)
        download.raise_for_status()
        response = await self._request(
            "POST",
            path,
            data={"payload_json": json.dumps({"content": text})},
            files={"files[0]": (attachment.name, download.content)},
        )
        return str(response.json()["id"])

    async def edit_message(self, channel_id: str, message_id: str, text: str) -> None:
        await self._request("PATCH", f"/channels/{channel_id}/messages/{message_id}", json={"content": text})

    async def bulk_delete(self, channel_id: str, message_ids: Sequence[str]) -> None:
        ids = list(message_ids)
        for start in range(0, len(ids), BULK_DELETE_MAX):
            batch = ids[start : start + BULK_DELETE_MAX]
            if len(batch) == 1:
                await self._request("DELETE", f"/channels/{channel_id}/messages/{batch[0]}")
            else:
                await self._request("POST", f"/channels/{channel_id}/messages/bulk-delete", json={"messages": batch})

    async def _guild_id(self, channel_id: str) -> str:
        if channel_id not in self._guild_by_channel:
            response = await self._request("GET", f"/channels/{channel_id}")
            self._guild_by_channel[channel_id] = str(response.json()["guild_id"])
        return self._guild_by_channel[channel_id]

    async def find_member_by_display_name(self, channel_id: str, name: str) -> Optional[str]:
        """Return the id of a guild member whose nick, global name or username is ``name``."""

        guild_id = await self._guild_id(channel_id)
        response = await self._request(
            "GET",
            f"/guilds/{guild_id}/members/search",
            params={"query": name, "limit": 10},
        )
        for member in response.json():
            if name in _member_names(member):
                return str(member["user"]["id"])
        return None
