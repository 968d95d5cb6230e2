"""Players: fleet ownership, ship layout, forbidden targets and statistics."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Sequence

from .errors import GameStateError
from .ship import Coordinate, Orientation, Ship

if TYPE_CHECKING:
    from .board import Board
    from .combat import AttackResult
    from .fleet import Fleet

logger = logging.getLogger(__name__)


class PlayerRole(Enum):
    HUMAN = "human"
    AI = "ai"


@dataclass(frozen=True)
class Placement:
    """Which ship segment sits on a cell of the owner's layout."""

    ship_id: str
    cell_index: int
    orientation: Orientation


@dataclass(frozen=True)
class PlayerStats:
    """End-of-game summary, computed on demand."""

    player_id: str
    name: str
    role: str
    shots: int
    hits: int
    misses: int
    sunk: int
    hits_damage: float
    accuracy: float
    average_damage: float
    damage_per_shot: float
    score: int
    ships_remaining: int
    defeated: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class Player:
    """Base player.

    A player exclusively owns its placements index and forbidden-target set.
    The board is a shared, non-owning reference used for validation. By
    default moves come from the host: :meth:`queue_target` stores the choice
    and :meth:`select_target` hands it to the orchestrator. Variants override
    :meth:`select_target` and :meth:`observe_result`.
    """

    role = PlayerRole.HUMAN

    def __init__(
        self,
        player_id: str,
        name: str | None = None,
        *,
        difficulty: float = 1.0,
        board: Board | None = None,
    ) -> None:
        self.player_id = player_id
        self.name = name or player_id
        self.difficulty = difficulty
        self.board = board
        self.fleet: Fleet | None = None
        self.placements: dict[Coordinate, Placement] = {}
        self.forbidden_targets: set[Coordinate] = set()
        self.hits = 0
        self.misses = 0
        self.sunk = 0
        self.hits_damage = 0.0
        self.score = 0
        self.pending_target: Coordinate | None = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(player_id={self.player_id!r}, name={self.name!r})"

    def attach_board(self, board: Board) -> None:
        self.board = board

    # Layout -----------------------------------------------------------------

    def place_ship(self, ship: Ship, cells: Sequence[Coordinate], orientation: Orientation) -> bool:
        """Record ``ship`` on ``cells`` if they are free in this player's layout."""
        if len(cells) != ship.size:
            raise ValueError(f"{ship.name} needs {ship.size} cells, got {len(cells)}.")
        if any(cell in self.placements for cell in cells):
            return False
        if self.board is not None and not self.board.can_place_ship(cells, ship.terrain):
            return False
        for index, cell in enumerate(cells):
            self.placements[cell] = Placement(ship.ship_id, index, orientation)
        ship.is_placed = True
        logger.debug(
            "ship_placed",
            extra={"player": self.player_id, "ship": ship.name, "cells": [c.label for c in cells]},
        )
        return True

    def ship_at(self, coord: Coordinate) -> tuple[Ship, Placement] | None:
        placement = self.placements.get(coord)
        if placement is None:
            return None
        ship = self.get_ship(placement.ship_id)
        if ship is None:
            return None
        return ship, placement

    def has_ship_at(self, coord: Coordinate) -> bool:
        return coord in self.placements

    def get_ship(self, ship_id: str) -> Ship | None:
        if self.fleet is None:
            return None
        return self.fleet.get_ship(ship_id)

    def cells_of(self, ship_id: str) -> list[Coordinate]:
        """Cells of one ship, ordered by segment index."""
        cells = [
            (placement.cell_index, coord)
            for coord, placement in self.placements.items()
            if placement.ship_id == ship_id
        ]
        return [coord for _, coord in sorted(cells)]

    def remove_ship_placements(self, ship_id: str) -> list[Coordinate]:
        cells = self.cells_of(ship_id)
        for coord in cells:
            del self.placements[coord]
        return cells

    def clear_placements(self) -> None:
        self.placements.clear()
        if self.fleet is not None:
            for ship in self.fleet.ships:
                ship.is_placed = False

    # Targeting ----------------------------------------------------------------

    def forbid(self, coord: Coordinate) -> None:
        self.forbidden_targets.add(coord)

    def is_forbidden(self, coord: Coordinate) -> bool:
        return coord in self.forbidden_targets

    def legal_targets(self) -> list[Coordinate]:
        """Attackable, not-forbidden cells in row-major order."""
        if self.board is None:
            return []
        return [
            coord
            for coord in self.board.coordinates()
            if self.board.is_valid_attack_target(coord) and coord not in self.forbidden_targets
        ]

    def queue_target(self, coord: Coordinate) -> None:
        self.pending_target = coord

    def select_target(self, legal_targets: Sequence[Coordinate]) -> Coordinate:
        """Return the queued target once it is confirmed legal."""
        target = self.pending_target
        if target is None:
            raise GameStateError(f"{self.name} has not chosen a target.")
        self.pending_target = None
        if target not in legal_targets:
            raise GameStateError(
                f"({target.row}, {target.col}) is not a legal target for {self.name}."
            )
        return target

    def observe_result(self, coord: Coordinate, result: AttackResult) -> None:
        """Hook called with the outcome of this player's own shot."""

    def prepare_for_battle(self, enemy_ship_sizes: Sequence[int]) -> None:
        """Hook called once fleets are placed, with every enemy ship's length."""

    # Statistics -----------------------------------------------------------------

    @property
    def shots(self) -> int:
        return self.hits + self.misses

    @property
    def accuracy(self) -> float:
        return (self.hits / self.shots) * 100 if self.shots else 0.0

    @property
    def average_damage(self) -> float:
        return self.hits_damage / self.hits if self.hits else 0.0

    @property
    def damage_per_shot(self) -> float:
        return self.hits_damage / self.shots if self.shots else 0.0

    def is_defeated(self) -> bool:
        return self.fleet is None or self.fleet.is_defeated()

    def stats(self) -> PlayerStats:
        return PlayerStats(
            player_id=self.player_id,
            name=self.name,
            role=self.role.value,
            shots=self.shots,
            hits=self.hits,
            misses=self.misses,
            sunk=self.sunk,
            hits_damage=round(self.hits_damage, 4),
            accuracy=round(self.accuracy, 1),
            average_damage=round(self.average_damage, 2),
            damage_per_shot=round(self.damage_per_shot, 2),
            score=self.score,
            ships_remaining=len(self.fleet.afloat()) if self.fleet else 0,
            defeated=self.is_defeated(),
        )

    def reset(self) -> None:
        """Forget per-game state; fleet ships are restored to full health."""
        self.forbidden_targets.clear()
        self.clear_placements()
        self.hits = 0
        self.misses = 0
        self.sunk = 0
        self.hits_damage = 0.0
        self.score = 0
        self.pending_target = None
        if self.fleet is not None:
            self.fleet.reset()


class HumanPlayer(Player):
    """A player whose moves come from an outside interface."""

    role = PlayerRole.HUMAN

    def __init__(
        self,
        player_id: str,
        name: str | None = None,
        *,
        difficulty: float = 1.0,
        board: Board | None = None,
        max_turn_seconds: float | None = None,
    ) -> None:
        super().__init__(player_id, name, difficulty=difficulty, board=board)
        self.max_turn_seconds = max_turn_seconds
        self.last_result: AttackResult | None = None

    def observe_result(self, coord: Coordinate, result: AttackResult) -> None:
        self.last_result = result

    def reset(self) -> None:
        super().reset()
        self.last_result = None
