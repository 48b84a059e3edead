"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the Telegram source, the Discord
destination and the correlation store so that the core can be reused with
different clients and backends.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

from core.models import Attachment

TELEGRAM_TO_DISCORD = "t2d"


class SourcePort(Protocol):
    """Telegram operations required by the core pipeline."""

    async def resolve_file_link(self, file_id: str) -> str:
        """Return a direct download link, raising AttachmentTooLarge for oversized files."""
        ...

    async def reply(self, chat_id: int, message_id: int, text: str, html: bool = False) -> int:
        ...

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        ...


class DestinationPort(Protocol):
    """Discord operations required by the core pipeline."""

    async def send(self, channel_id: str, text: str, attachment: Optional[Attachment] = None) -> str:
        """Send a message and return its id, raising AttachmentTooLarge on oversized uploads."""
        ...

    async def edit_message(self, channel_id: str, message_id: str, text: str) -> None:
        ...

    async def bulk_delete(self, channel_id: str, message_ids: Sequence[str]) -> None:
        ...

    async def find_member_by_display_name(self, channel_id: str, name: str) -> Optional[str]:
        ...


class CorrelationStorePort(Protocol):
    """Durable source message id -> destination message ids mapping."""

    def insert(self, direction: str, bridge_name: str, source_id: int, dest_ids: Sequence[str]) -> None:
        ...

    def lookup(self, direction: str, bridge_name: str, source_id: int) -> list[str]:
        """Return recorded ids or raise CorrelationMiss."""
        ...

    def remove(self, direction: str, bridge_name: str, source_id: int) -> None:
        ...
