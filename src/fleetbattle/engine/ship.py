"""Ship domain model: coordinates, orientation and per-cell health."""

from __future__ import annotations

import itertools
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .rules import RevealPolicy, ShipSpec

COLUMN_LABELS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"

_ship_ids = itertools.count(1)


def column_label(index: int) -> str:
    """Spreadsheet-style column name: 0 -> A, 25 -> Z, 26 -> AA."""
    if index < 0:
        raise ValueError(f"Column index must be non-negative, got {index}.")
    letters = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = COLUMN_LABELS[rem] + letters
    return letters


def column_index(letters: str) -> int:
    """Inverse of :func:`column_label`; raises ``ValueError`` on non-letters."""
    if not letters or any(ch not in COLUMN_LABELS for ch in letters.upper()):
        raise ValueError(f"Invalid column name {letters!r}.")
    index = 0
    for ch in letters.upper():
        index = index * 26 + COLUMN_LABELS.index(ch) + 1
    return index - 1


@dataclass(frozen=True, order=True)
class Coordinate:
    """Immutable board coordinate, usable directly as a dict or set key."""

    row: int
    col: int

    @property
    def label(self) -> str:
        """Human-facing name such as ``C4`` or ``AB12`` (column letters, 1-based row)."""
        return f"{column_label(self.col)}{self.row + 1}"

    def offset(self, d_row: int, d_col: int) -> Coordinate:
        return Coordinate(self.row + d_row, self.col + d_col)

    def orthogonal_neighbours(self) -> tuple[Coordinate, ...]:
        return (
            self.offset(-1, 0),
            self.offset(1, 0),
            self.offset(0, -1),
            self.offset(0, 1),
        )

    def manhattan(self, other: Coordinate) -> int:
        return abs(self.row - other.row) + abs(self.col - other.col)


class Orientation(Enum):
    """Allowed ship orientations."""

    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"

    def cells(self, start: Coordinate, size: int) -> list[Coordinate]:
        """Cells covered by a ship of ``size`` anchored at ``start``."""
        if self is Orientation.HORIZONTAL:
            return [Coordinate(start.row, start.col + offset) for offset in range(size)]
        return [Coordinate(start.row + offset, start.col) for offset in range(size)]


class RevealLevel(Enum):
    """Information disclosed to observers about a struck ship."""

    HIDDEN = "hidden"
    HIT = "hit"
    SIZE_HINT = "size-hint"
    CRITICAL = "critical"
    FULL = "full"


def _new_ship_id() -> str:
    return f"ship-{next(_ship_ids)}"


@dataclass
class Ship:
    """A single vessel with one health value per occupied cell.

    Health starts at 1.0 per cell and only ever decreases through
    :meth:`receive_hit`; :meth:`repair` is the single way back up.
    """

    name: str
    size: int
    ship_class: str | None = None
    terrain: tuple[str, ...] = ("deep", "shallow")
    defense: float = 1.0
    ship_id: str = field(default_factory=_new_ship_id)
    health: list[float] = field(init=False)
    is_placed: bool = False
    hits_taken: int = 0
    sunk_at: float | None = None

    def __post_init__(self) -> None:
        if self.size < 1:
            raise ValueError("Ship size must be at least 1.")
        if self.ship_class is None:
            self.ship_class = self.name
        self.health = [1.0] * self.size

    @classmethod
    def from_spec(cls, spec: ShipSpec) -> Ship:
        return cls(
            name=spec.name,
            size=spec.size,
            ship_class=spec.class_name,
            terrain=tuple(spec.terrain),
            defense=spec.defense,
        )

    def receive_hit(self, index: int, damage: float = 1.0) -> float:
        """Damage one cell and return the ship's overall health fraction.

        Cells that are already destroyed take no further damage, negative
        damage counts as zero, and health stays within ``[0, 1]``.
        """
        if not 0 <= index < self.size:
            raise IndexError(f"Cell index {index} out of range for {self.name}.")
        if self.health[index] > 0:
            applied = max(0.0, damage)
            self.health[index] = min(1.0, max(0.0, self.health[index] - applied))
            self.hits_taken += 1
            if self.sunk_at is None and self.is_sunk():
                self.sunk_at = time.time()
        return self.health_fraction()

    def cell_alive(self, index: int) -> bool:
        return self.health[index] > 0

    def is_sunk(self) -> bool:
        return all(value <= 0 for value in self.health)

    def health_fraction(self) -> float:
        return max(0.0, sum(self.health) / self.size)

    def reveal_level(self, policy: RevealPolicy) -> RevealLevel:
        if self.is_sunk():
            return RevealLevel.FULL
        if self.hits_taken == 0:
            return RevealLevel.HIDDEN
        if self.health_fraction() <= policy.critical_health:
            return RevealLevel.CRITICAL
        if self.hits_taken >= policy.size_hint_hits:
            return RevealLevel.SIZE_HINT
        return RevealLevel.HIT

    def repair(self) -> None:
        """Restore every cell to full health (capture only)."""
        self.health = [1.0] * self.size
        self.hits_taken = 0
        self.sunk_at = None

    def reset(self) -> None:
        self.repair()
        self.is_placed = False
