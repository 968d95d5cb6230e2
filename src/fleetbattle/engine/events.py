"""Typed observer hooks and diagnostic records."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from .ship import Coordinate

if TYPE_CHECKING:
    from .player import Player, PlayerStats


@dataclass(frozen=True)
class ShipSunkEvent:
    ship_id: str
    ship_name: str
    owner_id: str
    sunk_by: str
    coord: Coordinate
    captured: bool = False


@dataclass(frozen=True)
class GameOverEvent:
    winner: Player | None
    stats: dict[str, PlayerStats]
    turns: int
    duration_seconds: float


@dataclass(frozen=True)
class Diagnostic:
    """A contract violation recorded instead of raised."""

    kind: str
    player_id: str | None
    coord: Coordinate | None
    detail: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class EventHooks:
    """Optional synchronous callbacks supplied by the host application."""

    on_ship_sunk: Callable[[ShipSunkEvent], Any] | None = None
    on_game_over: Callable[[GameOverEvent], Any] | None = None
    on_opponent_shot: Callable[[Player, Coordinate], Any] | None = None
