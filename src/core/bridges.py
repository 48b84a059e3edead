"""Bridge compilation, lookup and filtering (core domain)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

DIRECTION_BOTH = "both"
DIRECTION_TELEGRAM_TO_DISCORD = "t2d"
DIRECTION_DISCORD_TO_TELEGRAM = "d2t"

DIRECTIONS = {DIRECTION_BOTH, DIRECTION_TELEGRAM_TO_DISCORD, DIRECTION_DISCORD_TO_TELEGRAM}


@dataclass(frozen=True)
class TelegramEndpoint:
    """Telegram side of a bridge and its relay policy."""

    chat_id: int
    relay_commands: bool = True
    relay_join_messages: bool = True
    relay_leave_messages: bool = True
    send_usernames: bool = True
    cross_delete_on_discord: bool = True


@dataclass(frozen=True)
class DiscordEndpoint:
    channel_id: str


@dataclass(frozen=True)
class Bridge:
    """A configured link between one Telegram chat and one Discord channel."""

    name: str
    direction: str
    telegram: TelegramEndpoint
    discord: DiscordEndpoint


def build_bridges(bridges_config: Iterable[dict]) -> List[Bridge]:
    """Normalize bridge configs into immutable Bridge objects.

    Disabled entries are skipped. Unknown directions and duplicate names are
    rejected up front since correlation entries are keyed by bridge name.
    """

    compiled: List[Bridge] = []
    names: set[str] = set()
    for entry in bridges_config:
        if not entry.get("enabled", True):
            continue
        name = entry["name"]
        if name in names:
            raise ValueError(f"Duplicate bridge name: {name}")
        direction = entry.get("direction", DIRECTION_BOTH)
        if direction not in DIRECTIONS:
            raise ValueError(f"Unsupported direction for bridge {name}: {direction}")
        telegram = entry.get("telegram", {})
        discord = entry.get("discord", {})
        compiled.append(
            Bridge(
                name=name,
                direction=direction,
                telegram=TelegramEndpoint(
                    chat_id=int(telegram["chat_id"]),
                    relay_commands=bool(telegram.get("relay_commands", True)),
                    relay_join_messages=bool(telegram.get("relay_join_messages", True)),
                    relay_leave_messages=bool(telegram.get("relay_leave_messages", True)),
                    send_usernames=bool(telegram.get("send_usernames", True)),
                    cross_delete_on_discord=bool(telegram.get("cross_delete_on_discord", True)),
                ),
                discord=DiscordEndpoint(channel_id=str(discord["channel_id"])),
            )
        )
        names.add(name)
    return compiled


class BridgeRegistry:
    """Lookup of bridges by Telegram chat id, in configuration order."""

    def __init__(self, bridges: Iterable[Bridge]) -> None:
        self._bridges = list(bridges)
        self._by_chat: dict[int, Tuple[Bridge, ...]] = {}
        for bridge in self._bridges:
            chat_id = bridge.telegram.chat_id
            self._by_chat[chat_id] = self._by_chat.get(chat_id, ()) + (bridge,)

    def __len__(self) -> int:
        return len(self._bridges)

    def bridges_for(self, telegram_chat_id: int) -> Tuple[Bridge, ...]:
        return self._by_chat.get(telegram_chat_id, ())


def without_direction(bridges: Sequence[Bridge], direction: str) -> Tuple[Bridge, ...]:
    return tuple(bridge for bridge in bridges if bridge.direction != direction)


def only_relaying_commands(bridges: Sequence[Bridge]) -> Tuple[Bridge, ...]:
    return tuple(bridge for bridge in bridges if bridge.telegram.relay_commands)


def only_relaying_join_notices(bridges: Sequence[Bridge]) -> Tuple[Bridge, ...]:
    return tuple(bridge for bridge in bridges if bridge.telegram.relay_join_messages)


def only_relaying_leave_notices(bridges: Sequence[Bridge]) -> Tuple[Bridge, ...]:
    return tuple(bridge for bridge in bridges if bridge.telegram.relay_leave_messages)
