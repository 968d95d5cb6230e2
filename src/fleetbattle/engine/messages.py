"""Player-facing game messages and the battle log."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Mapping

from .ship import RevealLevel

logger = logging.getLogger(__name__)


class MessageChannel(Enum):
    CONSOLE = "console"
    LOG = "log"
    SYSTEM = "system"
    UI = "ui"


class MessageType(Enum):
    ATTACK_MISS = "attack_miss"
    ATTACK_HIT_UNKNOWN = "attack_hit_unknown"
    ATTACK_HIT_SIZE_SMALL = "attack_hit_size_small"
    ATTACK_HIT_SIZE_MEDIUM = "attack_hit_size_medium"
    ATTACK_HIT_SIZE_LARGE = "attack_hit_size_large"
    ATTACK_HIT_CRITICAL = "attack_hit_critical"
    SHIP_SUNK = "ship_sunk"
    GAME_START = "game_start"
    TURN = "turn"
    GAME_END = "game_end"


DEFAULT_TEMPLATES: dict[str, str] = {
    "attack_miss": "{attacker} fired at {cell}: miss.",
    "attack_hit_unknown": "{attacker} fired at {cell}: hit!",
    "attack_hit_size_small": "{attacker} hit a small vessel at {cell}.",
    "attack_hit_size_medium": "{attacker} hit a medium vessel at {cell}.",
    "attack_hit_size_large": "{attacker} hit a large vessel at {cell}.",
    "attack_hit_critical": "{attacker} critically damaged {target}'s {ship} at {cell}!",
    "ship_sunk": "{attacker} sank {target}'s {ship}!",
    "game_start": "Battle begins: {players}.",
    "turn": "Turn {turn}: {player} to fire.",
    "game_end": "Game over. Winner: {winner}.",
}


def hit_message_type(level: RevealLevel, size_category: str) -> MessageType:
    """Message for a ship that was hit but is still afloat."""
    if level is RevealLevel.CRITICAL:
        return MessageType.ATTACK_HIT_CRITICAL
    if level is RevealLevel.SIZE_HINT:
        try:
            return MessageType(f"attack_hit_size_{size_category}")
        except ValueError:
            return MessageType.ATTACK_HIT_UNKNOWN
    return MessageType.ATTACK_HIT_UNKNOWN


@dataclass(frozen=True)
class Message:
    kind: MessageType
    text: str
    channels: tuple[MessageChannel, ...]
    turn: int
    timestamp: float


@dataclass
class BattleLogEntry:
    text: str
    kind: str
    turn: int
    timestamp: float = field(default_factory=time.time)


class MessageLog:
    """Formats messages from templates and records them per channel."""

    DEFAULT_CHANNELS = (MessageChannel.CONSOLE, MessageChannel.LOG)

    def __init__(
        self,
        templates: Mapping[str, str] | None = None,
        turn_source: Callable[[], int] | None = None,
    ) -> None:
        self.templates = {**DEFAULT_TEMPLATES, **(templates or {})}
        self._turn_source = turn_source or (lambda: 0)
        self.history: list[Message] = []
        self.battle_log_entries: list[BattleLogEntry] = []
        self._current: dict[MessageChannel, str] = {}
        self._subscribers: list[Callable[[Message], None]] = []

    def subscribe(self, callback: Callable[[Message], None]) -> Callable[[], None]:
        """Register ``callback``; the returned function unsubscribes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def format(self, kind: MessageType, **context: Any) -> str:
        template = self.templates.get(kind.value, kind.value)
        try:
            return template.format(**context)
        except (KeyError, IndexError):
            logger.warning("message_template_incomplete", extra={"kind": kind.value})
            return template

    def post(
        self,
        kind: MessageType,
        channels: Iterable[MessageChannel] | None = None,
        **context: Any,
    ) -> Message:
        targets = tuple(channels) if channels is not None else self.DEFAULT_CHANNELS
        message = Message(
            kind=kind,
            text=self.format(kind, **context),
            channels=targets,
            turn=self._turn_source(),
            timestamp=time.time(),
        )
        self.history.append(message)
        for channel in targets:
            self._current[channel] = message.text
        if MessageChannel.LOG in targets:
            self.battle_log(message.text, kind.value)
        for callback in list(self._subscribers):
            callback(message)
        return message

    def current(self, channel: MessageChannel = MessageChannel.CONSOLE) -> str:
        return self._current.get(channel, "")

    def battle_log(self, text: str, kind: str = "info") -> None:
        self.battle_log_entries.append(BattleLogEntry(text=text, kind=kind, turn=self._turn_source()))

    def clear(self) -> None:
        self.history.clear()
        self.battle_log_entries.clear()
        self._current.clear()
