"""Targeting state machine for AI opponents.

Each shot either follows up on an unfinished hunt (a ship that has been hit
but not sunk) or falls back to the configured search strategy. The hunt
works like the classic hunt/target approach: probe the four neighbours of
the first hit, lock onto a row or column once a second hit lines up, and
only extend the line at its two ends until the ship goes down.
"""

from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Sequence

from fleetbattle.engine.combat import AttackOutcome
from fleetbattle.engine.errors import TargetingDefectError
from fleetbattle.engine.ship import Coordinate
from fleetbattle.telemetry import get_tracer

logger = logging.getLogger(__name__)
tracer = get_tracer("fleetbattle.ai.targeting")

_CLUSTER_OFFSETS = ((-2, 0), (2, 0), (0, -2), (0, 2), (-1, -1), (-1, 1), (1, -1), (1, 1))

AGGRESSIVE_CENTRE_REACH = 10
AGGRESSIVE_HIT_BONUS = 20
AGGRESSIVE_SHORTLIST = 3


class TargetingStrategy(Enum):
    RANDOM = "random"
    SPARSE_GRID = "sparse_grid"
    RADIAL = "radial"
    METHODICAL = "methodical"
    QUARTERING = "quartering"
    AGGRESSIVE = "aggressive"


class SkillLevel(Enum):
    """Novices never hunt; experts also probe around sunk ships."""

    NOVICE = "novice"
    COMPETENT = "competent"
    EXPERT = "expert"


class HuntAxis(Enum):
    ROW = "row"
    COLUMN = "column"


class SweepPhase(Enum):
    COARSE = "coarse"
    FINE = "fine"
    CLEANUP = "cleanup"


@dataclass(frozen=True)
class HitRecord:
    coord: Coordinate
    outcome: AttackOutcome
    shot_number: int


@dataclass
class TargetingMemory:
    """Everything an AI remembers within one game."""

    hits: dict[Coordinate, HitRecord] = field(default_factory=dict)
    misses: set[Coordinate] = field(default_factory=set)
    queue: deque[Coordinate] = field(default_factory=deque)
    axis: HuntAxis | None = None
    anchor: Coordinate | None = None
    phase: SweepPhase = SweepPhase.COARSE
    quadrant: int = 0
    shots: int = 0
    ships_sunk: int = 0

    @property
    def is_hunting(self) -> bool:
        return bool(self.hits)

    def clear_hunt(self) -> None:
        self.hits.clear()
        self.queue.clear()
        self.axis = None
        self.anchor = None

    def reset(self) -> None:
        self.clear_hunt()
        self.misses.clear()
        self.phase = SweepPhase.COARSE
        self.quadrant = 0
        self.shots = 0
        self.ships_sunk = 0


class Targeter:
    """Chooses one coordinate per turn and learns from the outcome.

    All random choices go through the injected ``rng`` so a seeded targeter
    replays identically.
    """

    def __init__(
        self,
        strategy: TargetingStrategy = TargetingStrategy.RANDOM,
        rng: random.Random | None = None,
        skill: SkillLevel = SkillLevel.COMPETENT,
        min_ship_length: int = 2,
        clustering_chance: float = 0.35,
    ) -> None:
        if min_ship_length < 1:
            raise ValueError("min_ship_length must be at least 1.")
        self.strategy = strategy
        self.skill = skill
        self.min_ship_length = min_ship_length
        self.clustering_chance = clustering_chance
        self.rng = rng or random.Random()
        self.memory = TargetingMemory()
        self._rows: int | None = None
        self._cols: int | None = None

    @property
    def hunts(self) -> bool:
        return self.skill is not SkillLevel.NOVICE

    def bind_board(self, rows: int, cols: int) -> None:
        self._rows = rows
        self._cols = cols

    def reset(self) -> None:
        self.memory.reset()

    # Selection ----------------------------------------------------------------

    def select_target(self, legal_targets: Sequence[Coordinate]) -> Coordinate:
        if not legal_targets:
            raise ValueError("No legal targets to choose from.")
        with tracer.start_as_current_span("targeting.select_target") as span:
            span.set_attribute("strategy", self.strategy.value)
            span.set_attribute("legal_targets", len(legal_targets))
            if self._rows is None:
                self._infer_bounds(legal_targets)

            legal = set(legal_targets)
            choice = self._next_hunt_target(legal) if self.hunts else None
            span.set_attribute("hunting", choice is not None)
            if choice is None:
                choice = self._strategy_target(legal_targets)
            span.set_attribute("phase", self.memory.phase.value)
            logger.debug(
                "target_selected",
                extra={
                    "row": choice.row,
                    "col": choice.col,
                    "strategy": self.strategy.value,
                    "phase": self.memory.phase.value,
                    "queued": len(self.memory.queue),
                },
            )
            return choice

    def _strategy_target(self, legal_targets: Sequence[Coordinate]) -> Coordinate:
        if self.strategy is TargetingStrategy.SPARSE_GRID:
            return self._sparse_grid_choice(legal_targets)
        if self.strategy is TargetingStrategy.RADIAL:
            spacing = 2 * self.min_ship_length
            coarse = [c for c in legal_targets if (c.row + c.col) % spacing == 0]
            if coarse:
                self.memory.phase = SweepPhase.COARSE
                return self._nearest_ring_choice(coarse)
            return self._sparse_grid_choice(legal_targets, SweepPhase.FINE)
        if self.strategy is TargetingStrategy.METHODICAL:
            return self._methodical_choice(legal_targets)
        if self.strategy is TargetingStrategy.QUARTERING:
            return self._quartering_choice(legal_targets)
        if self.strategy is TargetingStrategy.AGGRESSIVE:
            return self._aggressive_choice(legal_targets)
        return self.rng.choice(list(legal_targets))

    def _sparse_grid_choice(
        self, cells: Sequence[Coordinate], phase: SweepPhase = SweepPhase.COARSE
    ) -> Coordinate:
        grid = [c for c in cells if (c.row + c.col) % self.min_ship_length == 0]
        if grid:
            self.memory.phase = phase
            return self.rng.choice(grid)
        self.memory.phase = SweepPhase.CLEANUP
        return self.rng.choice(list(cells))

    def _methodical_choice(self, cells: Sequence[Coordinate]) -> Coordinate:
        """Lattice of every (2 x shortest ship)th row and column, then the sparse grid."""
        spacing = 2 * self.min_ship_length
        lattice = [c for c in cells if c.row % spacing == 0 and c.col % spacing == 0]
        if lattice:
            self.memory.phase = SweepPhase.COARSE
            return self.rng.choice(lattice)
        return self._sparse_grid_choice(cells, SweepPhase.FINE)

    def _quadrants(self) -> list[tuple[range, range]]:
        mid_row = self._rows // 2
        mid_col = self._cols // 2
        top, bottom = range(0, mid_row), range(mid_row, self._rows)
        left, right = range(0, mid_col), range(mid_col, self._cols)
        return [(top, left), (top, right), (bottom, left), (bottom, right)]

    def _quartering_choice(self, legal_targets: Sequence[Coordinate]) -> Coordinate:
        """Sweep one quadrant at a time, methodically, in reading order."""
        memory = self.memory
        quadrants = self._quadrants()
        while memory.quadrant < len(quadrants):
            rows, cols = quadrants[memory.quadrant]
            inside = [c for c in legal_targets if c.row in rows and c.col in cols]
            if inside:
                return self._methodical_choice(inside)
            memory.quadrant += 1
            logger.debug("quadrant_exhausted", extra={"next_quadrant": memory.quadrant})
        return self._methodical_choice(legal_targets)

    def _aggressive_choice(self, legal_targets: Sequence[Coordinate]) -> Coordinate:
        """Random pick among the three best-scoring cells."""
        centre_row = self._rows / 2
        centre_col = self._cols / 2
        hits = self.memory.hits

        def score(coord: Coordinate) -> float:
            distance = abs(coord.row - centre_row) + abs(coord.col - centre_col)
            adjacent = sum(1 for hit in hits if coord.manhattan(hit) == 1)
            return 1 + max(0.0, AGGRESSIVE_CENTRE_REACH - distance) + AGGRESSIVE_HIT_BONUS * adjacent

        ranked = sorted(legal_targets, key=score, reverse=True)
        return self.rng.choice(ranked[:AGGRESSIVE_SHORTLIST])

    def _nearest_ring_choice(self, cells: list[Coordinate]) -> Coordinate:
        """Random cell among those closest (Manhattan) to the board centre."""
        centre_row = (self._rows - 1) / 2
        centre_col = (self._cols - 1) / 2

        def distance(coord: Coordinate) -> float:
            return abs(coord.row - centre_row) + abs(coord.col - centre_col)

        nearest = min(distance(c) for c in cells)
        ring = [c for c in cells if distance(c) == nearest]
        return self.rng.choice(ring)

    # Hunting ------------------------------------------------------------------

    def _next_hunt_target(self, legal: set[Coordinate]) -> Coordinate | None:
        memory = self.memory
        for _ in range(3):
            candidate = self._pop_legal(legal)
            if candidate is not None:
                return candidate
            if not memory.is_hunting:
                return None
            self._refill_queue(legal)
        candidate = self._pop_legal(legal)
        if candidate is None:
            logger.info("hunt_abandoned", extra={"hits": len(memory.hits)})
            memory.clear_hunt()
        return candidate

    def _pop_legal(self, legal: set[Coordinate]) -> Coordinate | None:
        while self.memory.queue:
            candidate = self.memory.queue.popleft()
            if candidate in legal:
                return candidate
        return None

    def _refill_queue(self, legal: set[Coordinate]) -> None:
        """Both line ends are used up: extend the axis, or unlock and go perpendicular."""
        memory = self.memory
        if memory.axis is not None:
            ends = [c for c in self._axis_ends() if c in legal]
            if ends:
                self._enqueue(ends)
                return
            logger.debug("hunt_axis_unlocked", extra={"axis": memory.axis.value})
            memory.axis = None
            memory.anchor = None
        self._enqueue(
            c
            for hit in memory.hits
            for c in hit.orthogonal_neighbours()
            if c in legal and c not in memory.hits
        )

    def _axis_ends(self) -> list[Coordinate]:
        """The two cells just beyond the locked line through the anchor hit."""
        anchor = self.memory.anchor
        if self.memory.axis is HuntAxis.ROW:
            cols = [c.col for c in self.memory.hits if c.row == anchor.row]
            return [Coordinate(anchor.row, min(cols) - 1), Coordinate(anchor.row, max(cols) + 1)]
        rows = [c.row for c in self.memory.hits if c.col == anchor.col]
        return [Coordinate(min(rows) - 1, anchor.col), Coordinate(max(rows) + 1, anchor.col)]

    def _lock_axis(self, coord: Coordinate) -> None:
        memory = self.memory
        for other in memory.hits:
            if other == coord:
                continue
            if other.row == coord.row:
                memory.axis = HuntAxis.ROW
                break
            if other.col == coord.col:
                memory.axis = HuntAxis.COLUMN
                break
        if memory.axis is not None:
            memory.anchor = coord
            logger.debug(
                "hunt_axis_locked",
                extra={"axis": memory.axis.value, "row": coord.row, "col": coord.col},
            )

    def _on_hit(self, coord: Coordinate) -> None:
        memory = self.memory
        if len(memory.hits) == 1:
            memory.queue.clear()
            self._enqueue(coord.orthogonal_neighbours())
            return
        if memory.axis is None:
            self._lock_axis(coord)
        if memory.axis is None:
            self._enqueue(coord.orthogonal_neighbours())
            return
        # Locked: only the two line ends stay queued, whatever line the hit was on.
        ends = self._axis_ends()
        self.rng.shuffle(ends)
        memory.queue = deque(c for c in ends if self._is_candidate(c))

    def _enqueue(self, cells: Iterable[Coordinate]) -> None:
        fresh = [c for c in dict.fromkeys(cells) if self._is_candidate(c) and c not in self.memory.queue]
        self.rng.shuffle(fresh)
        self.memory.queue.extend(fresh)

    def _is_candidate(self, coord: Coordinate) -> bool:
        if coord.row < 0 or coord.col < 0:
            return False
        if self._rows is not None and coord.row >= self._rows:
            return False
        if self._cols is not None and coord.col >= self._cols:
            return False
        return coord not in self.memory.hits and coord not in self.memory.misses

    def _cluster_after_sink(self, sunk_cells: list[Coordinate]) -> None:
        """Speculatively probe cells just beyond a sunk ship's perimeter."""
        sunk = set(sunk_cells)
        candidates = []
        for cell in sunk_cells:
            for d_row, d_col in _CLUSTER_OFFSETS:
                near = cell.offset(d_row, d_col)
                if near in sunk or any(near.manhattan(s) < 2 for s in sunk):
                    continue
                candidates.append(near)
        chosen = [c for c in dict.fromkeys(candidates) if self.rng.random() < self.clustering_chance]
        self._enqueue(chosen)
        if chosen:
            logger.debug("cluster_probe_queued", extra={"cells": len(chosen)})

    # Observation --------------------------------------------------------------

    def observe_result(
        self, coord: Coordinate, outcome: AttackOutcome, ship_sunk: bool = False
    ) -> None:
        """Update memory with the outcome of our own shot at ``coord``."""
        memory = self.memory
        if outcome in (AttackOutcome.ALL_DESTROYED, AttackOutcome.INVALID):
            logger.error(
                "targeting_defect_observed",
                extra={"row": coord.row, "col": coord.col, "outcome": outcome.value},
            )
            raise TargetingDefectError(outcome.value, coord.row, coord.col)

        memory.shots += 1
        if coord in memory.queue:
            memory.queue = deque(c for c in memory.queue if c != coord)

        if outcome is AttackOutcome.MISS:
            memory.misses.add(coord)
            return

        if outcome is AttackOutcome.DESTROYED and ship_sunk:
            memory.ships_sunk += 1
            sunk_cells = [*memory.hits, coord]
            memory.clear_hunt()
            if self.skill is SkillLevel.EXPERT:
                self._cluster_after_sink(sunk_cells)
            return

        memory.hits[coord] = HitRecord(coord, outcome, memory.shots)
        if self.hunts:
            self._on_hit(coord)

    def _infer_bounds(self, legal_targets: Sequence[Coordinate]) -> None:
        self._rows = max(c.row for c in legal_targets) + 1
        self._cols = max(c.col for c in legal_targets) + 1
