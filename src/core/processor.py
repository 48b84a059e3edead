"""Core message processing pipeline.

This module is integration-agnostic. It only relies on ports for Telegram,
Discord and correlation storage, enabling other clients or backends without
changes here.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Awaitable, Callable

from core.antispam import AntiSpamSet
from core.bridges import (
    DIRECTION_DISCORD_TO_TELEGRAM,
    Bridge,
    BridgeRegistry,
    only_relaying_commands,
    only_relaying_join_notices,
    only_relaying_leave_notices,
    without_direction,
)
from core.config import RelaySettings
from core.enrichment import (
    EDIT_ENRICHMENT_STAGES,
    ENRICHMENT_STAGES,
    BridgeFilter,
    Continue,
    EnrichmentEnv,
    ShortCircuit,
    StageResult,
    route,
    run_stages,
    select_message,
)
from core.identity import identity_from_user
from core.models import CrossMessage, InboundMessage, InboundUpdate, TelegramUser
from core.ports import CorrelationStorePort, DestinationPort, SourcePort
from core.propagation import EditPropagator
from core.relay import RelayExecutor
from core.rendering import render_payload

LOGGER = logging.getLogger(__name__)

CHAT_INFO_COMMAND = "/chatinfo"


def is_command(message: InboundMessage) -> bool:
    return (message.text or "").startswith("/")


def member_notice(user: TelegramUser, action: str) -> str:
    person = identity_from_user(user)
    return f"**{person.first_name} ({person.username or 'No username'})** {action} the Telegram side of the chat"


class MessageProcessor:
    """Orchestrates enrichment, rendering, relaying and edit propagation."""

    def __init__(
        self,
        registry: BridgeRegistry,
        source: SourcePort,
        destination: DestinationPort,
        store: CorrelationStorePort,
        anti_spam: AntiSpamSet,
        settings: RelaySettings,
        bot_user_id: int,
    ) -> None:
        self._registry = registry
        self._source = source
        self._destination = destination
        self._anti_spam = anti_spam
        self._settings = settings
        self._env = EnrichmentEnv(source=source, telegram=settings.telegram, bot_user_id=bot_user_id)
        self._executor = RelayExecutor(
            destination,
            store,
            message_limit=settings.discord.message_limit,
            watermark=settings.watermark,
        )
        self._propagator = EditPropagator(source, destination, store, settings)
        self._background: set[asyncio.Task] = set()

    async def handle(self, update: InboundUpdate) -> None:
        """Relay one new Telegram message to all of its bridges."""

        stages = (select_message, _intercept_chat_info, self._route_message, *ENRICHMENT_STAGES)
        result = await run_stages(update, self._env, stages)
        if isinstance(result, ShortCircuit):
            await self._short_circuit(result)
            return

        cross = result.cross
        await asyncio.gather(*(self._relay_to(cross, bridge) for bridge in cross.bridges))
        LOGGER.info("Relayed message %s from chat %s to %s bridge(s)", cross.message_id, cross.chat_id, len(cross.bridges))

    async def handle_edit(self, update: InboundUpdate) -> None:
        """Apply an edited Telegram message to Discord, or cross-delete it."""

        stages = (select_message, self._route_message, *EDIT_ENRICHMENT_STAGES)
        result = await run_stages(update, self._env, stages)
        if isinstance(result, ShortCircuit):
            await self._short_circuit(result)
            return
        await self._propagator.propagate(result.cross, result.cross.bridges)

    async def handle_chat_member(self, update: InboundUpdate) -> None:
        """Tell Discord about users joining or leaving the Telegram chat."""

        selected = await select_message(CrossMessage(), update, self._env)
        if not isinstance(selected, Continue):
            return
        message = selected.cross.message
        bridges = without_direction(self._registry.bridges_for(message.chat.id), DIRECTION_DISCORD_TO_TELEGRAM)

        notices: list[tuple[Bridge, str]] = []
        for user in message.new_chat_members:
            text = member_notice(user, "joined")
            notices.extend((bridge, text) for bridge in only_relaying_join_notices(bridges))
        if message.left_chat_member is not None:
            text = member_notice(message.left_chat_member, "left")
            notices.extend((bridge, text) for bridge in only_relaying_leave_notices(bridges))

        await asyncio.gather(*(self._send_notice(bridge, text) for bridge, text in notices))

    async def _route_message(self, cross: CrossMessage, update: InboundUpdate, env: EnrichmentEnv) -> StageResult:
        filters: list[BridgeFilter] = [partial(without_direction, direction=DIRECTION_DISCORD_TO_TELEGRAM)]
        if is_command(cross.message):
            filters.append(only_relaying_commands)
        return await route(self._registry, filters)(cross, update, env)

    async def _relay_to(self, cross: CrossMessage, bridge: Bridge) -> None:
        try:
            payload = await render_payload(
                cross,
                bridge,
                self._destination,
                self._settings.telegram,
                self._settings.discord,
            )
        except Exception as err:
            LOGGER.error("Could not prepare a message for Discord on bridge %s: %s", bridge.name, err)
            return
        await self._executor.relay(cross, [payload])

    async def _send_notice(self, bridge: Bridge, text: str) -> None:
        try:
            await self._destination.send(bridge.discord.channel_id, text)
        except Exception as err:
            LOGGER.error("Could not tell Discord about a chat member on bridge %s: %s", bridge.name, err)

    async def _short_circuit(self, result: ShortCircuit) -> None:
        if result.reason == "unroutable":
            await self._inform_unroutable(result.cross)
        elif result.reason == "chatinfo":
            await self._reply_chat_info(result.cross)

    async def _inform_unroutable(self, cross: CrossMessage) -> None:
        """Tell an unbridged chat what this bot is, at most once per cool-down."""

        chat_id = cross.chat_id
        if chat_id in self._anti_spam:
            return

        notice_ids: list[int] = []

        async def delete_notice() -> None:
            for notice_id in notice_ids:
                await self._source.delete_message(chat_id, notice_id)

        self._anti_spam.suppress_for(chat_id, self._settings.anti_spam_cooldown, delete_notice)
        LOGGER.info("Chat %s is not bridged anywhere", chat_id)
        try:
            notice_ids.append(await self._source.reply(chat_id, cross.message_id, self._settings.unroutable_notice))
        except Exception as err:
            LOGGER.warning("Could not inform chat %s that it is not bridged: %s", chat_id, err)

    async def _reply_chat_info(self, cross: CrossMessage) -> None:
        chat_id = cross.chat_id
        try:
            reply_id = await self._source.reply(chat_id, cross.message_id, f"chatID: {chat_id}")
        except Exception as err:
            LOGGER.warning("Could not send chat info to chat %s: %s", chat_id, err)
            return

        async def cleanup() -> None:
            for message_id in (reply_id, cross.message_id):
                await self._source.delete_message(chat_id, message_id)

        self._run_later(self._settings.anti_spam_cooldown, cleanup)

    def _run_later(self, delay: float, action: Callable[[], Awaitable[None]]) -> None:
        async def runner() -> None:
            await asyncio.sleep(delay)
            try:
                await action()
            except Exception as err:
                LOGGER.debug("Delayed cleanup failed: %s", err)

        task = asyncio.create_task(runner())
        self._background.add(task)
        task.add_done_callback(self._background.discard)


async def _intercept_chat_info(cross: CrossMessage, update: InboundUpdate, env: EnrichmentEnv) -> StageResult:
    if (cross.message.text or "").strip() == CHAT_INFO_COMMAND:
        return ShortCircuit("chatinfo", cross)
    return Continue(cross)
