"""Delivery of rendered payloads to Discord.

Each bridge is an isolated attempt: a failure is logged with the bridge name
and never reaches the other bridges. Within a bridge chunks are sent one
after another so Discord shows them in reading order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from core.errors import AttachmentTooLarge
from core.models import CrossMessage, RenderedPayload
from core.ports import TELEGRAM_TO_DISCORD, CorrelationStorePort, DestinationPort

LOGGER = logging.getLogger(__name__)


def chunk_text(text: str, limit: int) -> list[str]:
    """Split text into ceil(len/limit) pieces that concatenate back to ``text``."""

    if limit <= 0:
        raise ValueError("limit must be positive")
    return [text[start : start + limit] for start in range(0, len(text), limit)]


def file_too_large_notice(sender_name: str) -> str:
    return (
        f"***{sender_name}** on Telegram sent a file, but it was too large for Discord. "
        "If you want it, ask them to send it some other way*"
    )


class RelayExecutor:
    """Sends payloads and records where each Telegram message ended up."""

    def __init__(
        self,
        destination: DestinationPort,
        store: CorrelationStorePort,
        message_limit: int,
        watermark: str = "",
    ) -> None:
        self._destination = destination
        self._store = store
        self._message_limit = message_limit
        self._watermark = watermark

    async def relay(self, cross: CrossMessage, payloads: Iterable[RenderedPayload]) -> None:
        """Relay to every bridge concurrently; bridges do not wait for each other."""

        await asyncio.gather(*(self._relay_isolated(cross, payload) for payload in payloads))

    async def _relay_isolated(self, cross: CrossMessage, payload: RenderedPayload) -> None:
        try:
            await self.relay_one(cross, payload)
        except Exception as err:
            LOGGER.error(
                "Could not relay a message to Discord on bridge %s: %s",
                payload.bridge.name,
                err,
            )

    async def relay_one(self, cross: CrossMessage, payload: RenderedPayload) -> list[str]:
        """Send one payload and store the produced Discord message ids."""

        chunks = chunk_text(payload.message_text, self._message_limit) or [""]
        chunks[-1] = chunks[-1] + self._watermark

        channel_id = payload.bridge.discord.channel_id
        sent: list[str] = []

        if payload.attachment is not None:
            try:
                sent.append(await self._destination.send(channel_id, chunks[0], payload.attachment))
                chunks = chunks[1:]
            except AttachmentTooLarge:
                LOGGER.info("Attachment too large for Discord on bridge %s", payload.bridge.name)
                sent.append(await self._destination.send(channel_id, file_too_large_notice(payload.sender_name)))

        for chunk in chunks:
            sent.append(await self._destination.send(channel_id, chunk))

        self._store.insert(TELEGRAM_TO_DISCORD, payload.bridge.name, cross.message_id, sent)
        LOGGER.debug(
            "Relayed message %s to bridge %s as %s",
            cross.message_id,
            payload.bridge.name,
            sent,
        )
        return sent
