"""Shared battle grid: bounds, terrain and shot markings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Sequence

from .errors import ConfigurationError
from .rules import TERRAIN_KINDS
from .ship import Coordinate

logger = logging.getLogger(__name__)

EXCLUDED = "excluded"


@dataclass
class Board:
    """Terrain and bounds shared read-only by every player.

    The only mutable state is the set of shot markings, which the orchestrator
    adds as shots resolve and :meth:`clear` removes on reset.
    """

    rows: int
    cols: int
    terrain: list[list[str]] = field(default_factory=list)
    shots: dict[Coordinate, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.rows < 1 or self.cols < 1:
            raise ConfigurationError("Board dimensions must be positive.")
        if not self.terrain:
            self.terrain = [["deep"] * self.cols for _ in range(self.rows)]
        if len(self.terrain) != self.rows or any(len(row) != self.cols for row in self.terrain):
            raise ConfigurationError(
                f"Terrain grid does not match board dimensions {self.rows}x{self.cols}."
            )
        unknown = {cell for row in self.terrain for cell in row} - TERRAIN_KINDS
        if unknown:
            raise ConfigurationError(f"Unknown terrain kinds: {sorted(unknown)}")

    @classmethod
    def open_water(cls, rows: int = 10, cols: int = 10) -> Board:
        return cls(rows=rows, cols=cols)

    @classmethod
    def from_terrain(cls, terrain: Sequence[Sequence[str]]) -> Board:
        grid = [list(row) for row in terrain]
        if not grid:
            raise ConfigurationError("Terrain grid is empty.")
        return cls(rows=len(grid), cols=len(grid[0]), terrain=grid)

    def is_valid_coordinate(self, coord: Coordinate) -> bool:
        """Check whether a coordinate lies inside the board boundaries."""
        return 0 <= coord.row < self.rows and 0 <= coord.col < self.cols

    def terrain_at(self, coord: Coordinate) -> str:
        return self.terrain[coord.row][coord.col]

    def is_valid_attack_target(self, coord: Coordinate) -> bool:
        """In bounds and not on terrain excluded from play."""
        return self.is_valid_coordinate(coord) and self.terrain_at(coord) != EXCLUDED

    def can_place_ship(self, cells: Iterable[Coordinate], allowed_terrain: Iterable[str]) -> bool:
        """Every cell is in bounds and on terrain the ship may occupy."""
        allowed = set(allowed_terrain)
        for coord in cells:
            if not self.is_valid_coordinate(coord):
                return False
            kind = self.terrain_at(coord)
            if kind == EXCLUDED or kind not in allowed:
                return False
        return True

    def coordinates(self) -> Iterator[Coordinate]:
        """All cells in row-major order."""
        for row in range(self.rows):
            for col in range(self.cols):
                yield Coordinate(row, col)

    def mark_shot(self, coord: Coordinate, outcome: str) -> None:
        self.shots[coord] = outcome

    def shot_at(self, coord: Coordinate) -> str | None:
        return self.shots.get(coord)

    def clear(self) -> None:
        """Remove all combat markings; terrain is left untouched."""
        logger.debug("board_cleared", extra={"markings": len(self.shots)})
        self.shots.clear()
