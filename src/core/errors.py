"""Errors raised across the core/adapter boundary."""

from __future__ import annotations


class AttachmentTooLarge(Exception):
    """A file exceeded a platform size limit (Telegram download or Discord upload)."""


class CorrelationMiss(LookupError):
    """No destination messages are recorded for a source message."""

    def __init__(self, direction: str, bridge_name: str, source_id: int) -> None:
        super().__init__(f"No {direction} mapping for message {source_id} on bridge {bridge_name}")
        self.direction = direction
        self.bridge_name = bridge_name
        self.source_id = source_id


class DestinationSendFailure(RuntimeError):
    """A destination platform rejected a send, edit or delete."""
