"""Shot resolution: outcome classification, damage, credit and capture."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

from fleetbattle.telemetry import get_meter, get_tracer

from .events import ShipSunkEvent
from .messages import MessageType, hit_message_type
from .player import Placement, Player, PlayerRole
from .ship import Coordinate, Orientation, RevealLevel, Ship

if TYPE_CHECKING:
    from .game import Game

logger = logging.getLogger(__name__)
tracer = get_tracer("fleetbattle.engine.combat")
meter = get_meter("fleetbattle.engine.combat")

SHOT_COUNTER = meter.create_counter(
    "fleetbattle_engine_shots",
    unit="1",
    description="Shots resolved by the combat engine, by outcome",
)
SINK_COUNTER = meter.create_counter(
    "fleetbattle_engine_ships_sunk",
    unit="1",
    description="Ships sunk by resolved shots",
)


class AttackOutcome(Enum):
    """Classification of a single shot at a single cell."""

    HIT = "hit"
    DESTROYED = "destroyed"
    MISS = "miss"
    ALL_DESTROYED = "all-destroyed"
    INVALID = "invalid"


@dataclass(frozen=True)
class Boost:
    """Attack/defense modifiers, as fractions (0.25 means 25%)."""

    attack: float = 0.0
    defense: float = 0.0


@dataclass(frozen=True)
class ShipHit:
    """Damage applied to one ship segment by one shot."""

    ship_id: str
    owner_id: str
    ship_name: str
    cell_index: int
    damage: float
    ship_health: float
    ship_sunk: bool
    reveal_level: RevealLevel
    captured: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "shipId": self.ship_id,
            "ownerId": self.owner_id,
            "damage": self.damage,
            "shipSunk": self.ship_sunk,
            "revealLevel": self.reveal_level.value,
        }


@dataclass(frozen=True)
class AttackResult:
    outcome: AttackOutcome
    coord: Coordinate
    firer_id: str
    ships: tuple[ShipHit, ...] = ()
    cell_fully_destroyed: bool = False

    @property
    def is_hit(self) -> bool:
        return self.outcome in (AttackOutcome.HIT, AttackOutcome.DESTROYED)

    @property
    def sunk_ship_ids(self) -> list[str]:
        return [hit.ship_id for hit in self.ships if hit.ship_sunk]

    @property
    def total_damage(self) -> float:
        return sum(hit.damage for hit in self.ships)

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "ships": [hit.to_dict() for hit in self.ships],
            "cellFullyDestroyed": self.cell_fully_destroyed,
        }


@dataclass
class _Occupant:
    owner: Player
    ship: Ship
    cell_index: int


@dataclass
class _ShotLedger:
    """Bookkeeping gathered while one shot is applied."""

    hits: list[ShipHit] = field(default_factory=list)
    newly_sunk: list[_Occupant] = field(default_factory=list)


class CombatResolver:
    """Resolves one shot by one player against every non-allied player.

    Resolution is atomic: all damage for the shot is applied before any
    ship-sunk observer runs, and observers are skipped when the shot ends
    the game.
    """

    def __init__(self, game: Game) -> None:
        self._game = game

    # Damage -------------------------------------------------------------------

    def calculate_damage(
        self, firer: Player, target: Player, ship: Ship, base_damage: float = 1.0
    ) -> float:
        attack = self._game.boosts.get(firer.player_id, Boost()).attack
        defense = self._game.boosts.get(target.player_id, Boost()).defense
        damage = base_damage * (1 + attack) * (1 - defense) * ship.defense
        return max(0.0, damage)

    # Placement ----------------------------------------------------------------

    def register_ship_placement(
        self,
        player: Player,
        ship: Ship,
        cells: list[Coordinate],
        orientation: Orientation,
    ) -> bool:
        """Record ``ship`` in ``player``'s layout; False when the cells are unusable."""
        if player.fleet is None or player.fleet.get_ship(ship.ship_id) is None:
            raise ValueError(f"{ship.name} does not belong to {player.player_id}'s fleet.")
        return player.place_ship(ship, cells, orientation)

    # Resolution ---------------------------------------------------------------

    def receive_attack(
        self, coord: Coordinate, firer: Player, base_damage: float = 1.0
    ) -> AttackResult:
        with tracer.start_as_current_span("combat.receive_attack") as span:
            span.set_attribute("firer", firer.player_id)
            span.set_attribute("row", coord.row)
            span.set_attribute("col", coord.col)
            result = self._resolve(coord, firer, base_damage)
            span.set_attribute("outcome", result.outcome.value)
            span.set_attribute("cell_fully_destroyed", result.cell_fully_destroyed)
            SHOT_COUNTER.add(1, attributes={"outcome": result.outcome.value})
            return result

    def _resolve(self, coord: Coordinate, firer: Player, base_damage: float) -> AttackResult:
        game = self._game
        board = game.board
        if board is None or not board.is_valid_attack_target(coord):
            game.record_diagnostic("invalid", firer, coord, "target outside the playable area")
            logger.error(
                "attack_invalid",
                extra={"firer": firer.player_id, "row": coord.row, "col": coord.col},
            )
            return AttackResult(AttackOutcome.INVALID, coord, firer.player_id)

        live, dead = self._occupants(coord, firer)

        if not live and not dead:
            firer.misses += 1
            firer.forbid(coord)
            board.mark_shot(coord, AttackOutcome.MISS.value)
            game.messages.post(MessageType.ATTACK_MISS, attacker=firer.name, cell=coord.label)
            logger.info(
                "attack_miss",
                extra={"firer": firer.player_id, "row": coord.row, "col": coord.col},
            )
            return AttackResult(AttackOutcome.MISS, coord, firer.player_id)

        if not live:
            firer.forbid(coord)
            game.record_diagnostic(
                "all-destroyed", firer, coord, f"{len(dead)} occupant(s) already destroyed"
            )
            logger.error(
                "attack_all_destroyed",
                extra={"firer": firer.player_id, "row": coord.row, "col": coord.col},
            )
            return AttackResult(
                AttackOutcome.ALL_DESTROYED, coord, firer.player_id, cell_fully_destroyed=True
            )

        ledger = self._apply_damage(coord, firer, live, base_damage)

        outcome = (
            AttackOutcome.DESTROYED
            if all(occupant.ship.is_sunk() for occupant in live)
            else AttackOutcome.HIT
        )
        cell_fully_destroyed = all(
            not occupant.ship.cell_alive(occupant.cell_index) for occupant in live + dead
        )
        if cell_fully_destroyed:
            firer.forbid(coord)

        captured = self._attempt_captures(firer, ledger.newly_sunk)
        hits = tuple(
            _with_capture(hit, hit.ship_id in captured) for hit in ledger.hits
        )

        multiplier = max(self._score_multiplier(firer, o.owner) for o in live)
        firer.hits += 1
        firer.hits_damage += sum(hit.damage for hit in hits)
        firer.score += round(game.era.scoring.hit_points * multiplier)
        board.mark_shot(coord, outcome.value)

        logger.info(
            "attack_resolved",
            extra={
                "firer": firer.player_id,
                "row": coord.row,
                "col": coord.col,
                "outcome": outcome.value,
                "ships": len(hits),
                "sunk": len(ledger.newly_sunk),
                "cell_fully_destroyed": cell_fully_destroyed,
            },
        )

        self._notify_sunk(coord, firer, ledger.newly_sunk, captured)
        return AttackResult(outcome, coord, firer.player_id, hits, cell_fully_destroyed)

    def _occupants(
        self, coord: Coordinate, firer: Player
    ) -> tuple[list[_Occupant], list[_Occupant]]:
        live: list[_Occupant] = []
        dead: list[_Occupant] = []
        for player in self._game.players:
            if self._game.is_same_alliance(firer, player):
                continue
            located = player.ship_at(coord)
            if located is None:
                continue
            ship, placement = located
            occupant = _Occupant(player, ship, placement.cell_index)
            if ship.cell_alive(placement.cell_index):
                live.append(occupant)
            else:
                dead.append(occupant)
        return live, dead

    def _apply_damage(
        self, coord: Coordinate, firer: Player, live: list[_Occupant], base_damage: float
    ) -> _ShotLedger:
        game = self._game
        ledger = _ShotLedger()
        for occupant in live:
            ship = occupant.ship
            damage = self.calculate_damage(firer, occupant.owner, ship, base_damage)
            before = ship.health[occupant.cell_index]
            ship.receive_hit(occupant.cell_index, damage)
            applied = before - ship.health[occupant.cell_index]
            sunk = ship.is_sunk()
            level = ship.reveal_level(game.era.reveal)
            ledger.hits.append(
                ShipHit(
                    ship_id=ship.ship_id,
                    owner_id=occupant.owner.player_id,
                    ship_name=ship.name,
                    cell_index=occupant.cell_index,
                    damage=applied,
                    ship_health=ship.health_fraction(),
                    ship_sunk=sunk,
                    reveal_level=level,
                )
            )
            if sunk:
                ledger.newly_sunk.append(occupant)
                firer.sunk += 1
                firer.score += round(
                    game.era.scoring.sink_points * self._score_multiplier(firer, occupant.owner)
                )
                SINK_COUNTER.add(1, attributes={"ship_class": ship.ship_class or ship.name})
                game.messages.post(
                    MessageType.SHIP_SUNK,
                    attacker=firer.name,
                    target=occupant.owner.name,
                    ship=ship.name,
                    cell=coord.label,
                )
            else:
                kind = hit_message_type(level, game.era.size_category(ship.size))
                game.messages.post(
                    kind,
                    attacker=firer.name,
                    target=occupant.owner.name,
                    ship=ship.name,
                    cell=coord.label,
                )
        return ledger

    @staticmethod
    def _score_multiplier(firer: Player, victim: Player) -> float:
        if firer.role is PlayerRole.HUMAN and victim.role is PlayerRole.AI:
            return victim.difficulty
        return 1.0

    # Capture ------------------------------------------------------------------

    def _attempt_captures(self, firer: Player, sunk: list[_Occupant]) -> set[str]:
        chance = self._game.era.capture_chance
        captured: set[str] = set()
        if chance <= 0:
            return captured
        for occupant in sunk:
            if self._game.rng.random() >= chance:
                continue
            if self._capture(firer, occupant):
                captured.add(occupant.ship.ship_id)
        return captured

    def _capture(self, firer: Player, occupant: _Occupant) -> bool:
        """Move a freshly sunk ship into the firer's fleet, fully repaired."""
        victim = occupant.owner
        ship = occupant.ship
        if firer.fleet is None or victim.fleet is None:
            return False
        if firer.fleet.is_defeated():
            logger.info("capture_refused_firer_defeated", extra={"firer": firer.player_id})
            return False
        if victim.fleet.is_defeated():
            logger.info(
                "capture_refused_donor_defeated",
                extra={"firer": firer.player_id, "victim": victim.player_id, "ship": ship.name},
            )
            return False
        cells = victim.cells_of(ship.ship_id)
        if any(firer.has_ship_at(cell) for cell in cells):
            logger.info(
                "capture_refused_overlap",
                extra={"firer": firer.player_id, "ship": ship.name},
            )
            return False

        orientation = victim.placements[cells[0]].orientation
        victim.remove_ship_placements(ship.ship_id)
        victim.fleet.remove_ship(ship)
        ship.repair()
        firer.fleet.add_ship(ship)
        for index, cell in enumerate(cells):
            firer.placements[cell] = Placement(ship.ship_id, index, orientation)
        ship.is_placed = True
        logger.info(
            "ship_captured",
            extra={"firer": firer.player_id, "victim": victim.player_id, "ship": ship.name},
        )
        return True

    # Notification -------------------------------------------------------------

    def _notify_sunk(
        self,
        coord: Coordinate,
        firer: Player,
        sunk: list[_Occupant],
        captured: set[str],
    ) -> None:
        game = self._game
        if not sunk or game.hooks.on_ship_sunk is None:
            return
        if len(game.surviving_alliances()) <= 1:
            return
        for occupant in sunk:
            game.hooks.on_ship_sunk(
                ShipSunkEvent(
                    ship_id=occupant.ship.ship_id,
                    ship_name=occupant.ship.name,
                    owner_id=occupant.owner.player_id,
                    sunk_by=firer.player_id,
                    coord=coord,
                    captured=occupant.ship.ship_id in captured,
                )
            )


def _with_capture(hit: ShipHit, captured: bool) -> ShipHit:
    return replace(hit, captured=True) if captured else hit
