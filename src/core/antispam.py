"""Per-chat suppression of repeated informational notices."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

LOGGER = logging.getLogger(__name__)


class AntiSpamSet:
    """Chats that were recently told something and should not hear it again yet.

    One instance is created at startup and shared by reference; entries
    remove themselves once their cool-down has passed.
    """

    def __init__(self) -> None:
        self._chats: set[int] = set()
        self._tasks: set[asyncio.Task] = set()

    def __contains__(self, chat_id: object) -> bool:
        return chat_id in self._chats

    def __len__(self) -> int:
        return len(self._chats)

    def suppress_for(
        self,
        chat_id: int,
        cooldown: float,
        on_expire: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> None:
        """Suppress ``chat_id`` for ``cooldown`` seconds, then run ``on_expire``."""

        self._chats.add(chat_id)
        task = asyncio.create_task(self._expire(chat_id, cooldown, on_expire))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _expire(
        self,
        chat_id: int,
        cooldown: float,
        on_expire: Optional[Callable[[], Awaitable[None]]],
    ) -> None:
        try:
            await asyncio.sleep(cooldown)
            if on_expire is not None:
                await on_expire()
        except Exception as err:
            # The notice may already be gone; the chat must still be released.
            LOGGER.debug("Cool-down cleanup for chat %s failed: %s", chat_id, err)
        finally:
            self._chats.discard(chat_id)
