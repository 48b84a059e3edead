"""Propagation of Telegram edits (and edit-to-"." deletions) to Discord."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from core.bridges import Bridge
from core.config import RelaySettings
from core.errors import CorrelationMiss
from core.models import CrossMessage
from core.ports import TELEGRAM_TO_DISCORD, CorrelationStorePort, DestinationPort, SourcePort
from core.rendering import render_payload

LOGGER = logging.getLogger(__name__)

DELETE_SENTINEL = "."


def is_delete_request(cross: CrossMessage, bridge: Bridge) -> bool:
    """An edit down to a lone, unformatted "." deletes the message on bridges that allow it."""

    return (
        bridge.telegram.cross_delete_on_discord
        and cross.text.raw == DELETE_SENTINEL
        and not cross.text.entities
    )


class EditPropagator:
    """Applies an edited Telegram message to the Discord messages it produced."""

    def __init__(
        self,
        source: SourcePort,
        destination: DestinationPort,
        store: CorrelationStorePort,
        settings: RelaySettings,
    ) -> None:
        self._source = source
        self._destination = destination
        self._store = store
        self._settings = settings

    async def propagate(self, cross: CrossMessage, bridges: Sequence[Bridge]) -> None:
        await asyncio.gather(*(self._propagate_isolated(cross, bridge) for bridge in bridges))

    async def _propagate_isolated(self, cross: CrossMessage, bridge: Bridge) -> None:
        deleting = is_delete_request(cross, bridge)
        action = "cross-delete" if deleting else "cross-edit"
        try:
            if deleting:
                await self.delete(cross, bridge)
            else:
                await self.edit(cross, bridge)
        except CorrelationMiss as err:
            LOGGER.warning("Could not %s message on bridge %s: %s", action, bridge.name, err)
        except Exception as err:
            LOGGER.error(
                "Could not %s message from Telegram to Discord on bridge %s: %s",
                action,
                bridge.name,
                err,
            )

    async def delete(self, cross: CrossMessage, bridge: Bridge) -> None:
        dest_ids = self._store.lookup(TELEGRAM_TO_DISCORD, bridge.name, cross.message_id)
        await asyncio.gather(
            self._destination.bulk_delete(bridge.discord.channel_id, dest_ids),
            self._source.delete_message(cross.chat_id, cross.message_id),
        )
        self._store.remove(TELEGRAM_TO_DISCORD, bridge.name, cross.message_id)
        LOGGER.info("Cross-deleted message %s on bridge %s", cross.message_id, bridge.name)

    async def edit(self, cross: CrossMessage, bridge: Bridge) -> None:
        dest_ids = self._store.lookup(TELEGRAM_TO_DISCORD, bridge.name, cross.message_id)
        payload = await render_payload(
            cross,
            bridge,
            self._destination,
            self._settings.telegram,
            self._settings.discord,
        )
        # Edits never re-chunk. The last tracked message is the one updated, so
        # an edit of a multi-chunk message replaces its tail with the opening
        # text; ids[0] may be an oversized-file notice rather than text.
        text = payload.message_text[: self._settings.discord.message_limit] + self._settings.watermark
        await self._destination.edit_message(bridge.discord.channel_id, dest_ids[-1], text)
