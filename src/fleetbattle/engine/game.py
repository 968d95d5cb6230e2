"""Match orchestration: lifecycle, turn order, AI pacing and game end."""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Mapping

from fleetbattle.telemetry import get_meter, get_tracer

from .actions import Action, ActionQueue, ActionStep
from .alliance import Alliance
from .board import Board
from .combat import AttackResult, Boost, CombatResolver
from .errors import (
    ConfigurationError,
    GameStateError,
    InvalidAttackError,
    PlacementError,
    TargetingDefectError,
)
from .events import Diagnostic, EventHooks, GameOverEvent
from .fleet import Fleet
from .messages import MessageLog, MessageType
from .player import HumanPlayer, Player, PlayerRole
from .rules import AnimationSettings, EraConfig, ShipSpec
from .ship import Coordinate, Orientation, Ship

logger = logging.getLogger(__name__)
tracer = get_tracer("fleetbattle.engine.game")
meter = get_meter("fleetbattle.engine.game")

PLACEMENT_COUNTER = meter.create_counter(
    "fleetbattle_engine_ship_placements",
    unit="1",
    description="Automatic ship placement attempts",
)
TURN_COUNTER = meter.create_counter(
    "fleetbattle_engine_turns",
    unit="1",
    description="Turns advanced by the orchestrator",
)


class GamePhase(Enum):
    """High-level lifecycle of a match."""

    SETUP = "setup"
    PLACEMENT = "placement"
    PLAYING = "playing"
    FINISHED = "finished"


class GameMode(Enum):
    TURN_BASED = "turn_based"
    RAPID_FIRE = "rapid_fire"


@dataclass(frozen=True)
class GameState:
    """Immutable snapshot of the current match."""

    phase: GamePhase
    mode: GameMode
    turn: int
    current_player: str | None
    winner: str | None
    players: tuple[str, ...]
    forbidden_targets: dict[str, frozenset[Coordinate]]


class Game:
    """Coordinates players, alliances and the combat engine for one match.

    All collaborators are injected: the era configuration, the random source
    (through ``rng_seed``), observer hooks, animation pacing and the sleep
    function used between paced AI steps.
    """

    def __init__(
        self,
        era: EraConfig | Mapping[str, Any] | None,
        mode: GameMode | str = GameMode.TURN_BASED,
        *,
        rng_seed: int | None = None,
        hooks: EventHooks | None = None,
        animation: AnimationSettings | None = None,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        if era is None:
            raise ConfigurationError("Era rules are required to create a game.")
        self.era = era if isinstance(era, EraConfig) else EraConfig.from_mapping(era)
        self.rules = self.era.game_rules
        self.mode = GameMode(mode)
        self.rng = random.Random(rng_seed)
        self.hooks = hooks or EventHooks()
        self.animation = animation or AnimationSettings()

        self.players: list[Player] = []
        self.alliances: dict[str, Alliance] = {
            spec.name: Alliance(spec.name, spec.owner) for spec in self.era.alliances
        }
        self._player_alliance: dict[str, str] = {}
        self._rosters: dict[str, list[Ship]] = {}
        self.board: Board | None = None
        self.boosts: dict[str, Boost] = {}

        self.phase = GamePhase.SETUP
        self.current_player_index = 0
        self.current_turn = 0
        self.winner: Player | None = None
        self.started_at: float | None = None
        self.ended_at: float | None = None
        self.last_result: AttackResult | None = None
        self.diagnostics: list[Diagnostic] = []
        self._game_over_fired = False

        self.messages = MessageLog(self.era.messages, turn_source=lambda: self.current_turn)
        self.actions = ActionQueue(sleep=sleep, speed_factor=self.animation.speed_factor)
        self.combat = CombatResolver(self)

    # Setup --------------------------------------------------------------------

    @property
    def current_player(self) -> Player | None:
        if not self.players:
            return None
        return self.players[self.current_player_index]

    def get_player(self, player_id: str) -> Player | None:
        for player in self.players:
            if player.player_id == player_id:
                return player
        return None

    def add_player(self, player: Player, alliance_name: str) -> Player:
        """Join ``player`` to an alliance and build its fleet from the era."""
        spec = self.era.alliance(alliance_name)
        if spec is None:
            raise ConfigurationError(f"Alliance {alliance_name!r} is not defined by this era.")
        return self.add_player_with_fleet(player, alliance_name, spec.ships)

    def add_player_with_fleet(
        self, player: Player, alliance_name: str, ships: Iterable[ShipSpec | Ship]
    ) -> Player:
        self._require_phase(GamePhase.SETUP, "add players")
        if len(self.players) >= self.era.max_players:
            raise ConfigurationError(
                f"Player cap of {self.era.max_players} reached; cannot add {player.player_id}."
            )
        alliance = self.alliances.get(alliance_name)
        if alliance is None:
            raise ConfigurationError(f"Alliance {alliance_name!r} does not exist.")
        if self.get_player(player.player_id) is not None:
            raise ConfigurationError(f"Player {player.player_id!r} already joined.")

        fleet = Fleet(owner=player.player_id)
        for item in ships:
            if isinstance(item, Ship):
                fleet.ships.append(item)
            else:
                fleet.add_ships([item])
        if not fleet.ships:
            raise ConfigurationError(f"No ships configured for {player.player_id}.")

        player.fleet = fleet
        self._rosters[player.player_id] = list(fleet.ships)
        if isinstance(player, HumanPlayer) and player.max_turn_seconds is None:
            player.max_turn_seconds = self.era.max_turn_seconds
        alliance.add_player(player)
        self._player_alliance[player.player_id] = alliance_name
        self.players.append(player)
        if self.board is not None:
            player.attach_board(self.board)
        logger.info(
            "player_added",
            extra={
                "player": player.player_id,
                "role": player.role.value,
                "alliance": alliance_name,
                "ships": len(fleet),
            },
        )
        return player

    def set_board(self, board: Board) -> None:
        """Attach the shared board and hand the reference to every player."""
        self.board = board
        for player in self.players:
            player.attach_board(board)

    def set_boost(self, player_id: str, attack: float = 0.0, defense: float = 0.0) -> None:
        self.boosts[player_id] = Boost(attack=attack, defense=defense)

    def alliance_of(self, player: Player) -> Alliance | None:
        name = self._player_alliance.get(player.player_id)
        return self.alliances.get(name) if name is not None else None

    def is_same_alliance(self, first: Player, second: Player) -> bool:
        if first.player_id == second.player_id:
            return True
        name = self._player_alliance.get(first.player_id)
        return name is not None and name == self._player_alliance.get(second.player_id)

    def register_ship_placement(
        self, player: Player, ship: Ship, cells: list[Coordinate], orientation: Orientation
    ) -> bool:
        return self.combat.register_ship_placement(player, ship, cells, orientation)

    def auto_place_ships(self, player: Player) -> None:
        """Randomly lay out every unplaced ship within the attempt budget."""
        if self.board is None:
            raise GameStateError("A board must be set before placing ships.")
        if player.fleet is None:
            raise ConfigurationError(f"Player {player.player_id} has no fleet.")
        budget = self.era.placement_attempts
        with tracer.start_as_current_span("game.auto_place_ships") as span:
            span.set_attribute("player", player.player_id)
            for ship in player.fleet.ships:
                if ship.is_placed:
                    continue
                for attempt in range(1, budget + 1):
                    orientation = self.rng.choice(list(Orientation))
                    start = Coordinate(
                        self.rng.randrange(self.board.rows), self.rng.randrange(self.board.cols)
                    )
                    if player.place_ship(ship, orientation.cells(start, ship.size), orientation):
                        PLACEMENT_COUNTER.add(1, attributes={"result": "success"})
                        logger.debug(
                            "random_ship_placed",
                            extra={"player": player.player_id, "ship": ship.name, "attempts": attempt},
                        )
                        break
                    PLACEMENT_COUNTER.add(1, attributes={"result": "failed"})
                else:
                    logger.error(
                        "ship_placement_exhausted",
                        extra={"player": player.player_id, "ship": ship.name, "attempts": budget},
                    )
                    raise PlacementError(player.player_id, ship.name, budget)

    def start_game(self) -> None:
        """Validate the roster, place AI fleets and open fire.

        On any failure the game stays in ``setup`` and placements made here
        are rolled back.
        """
        with tracer.start_as_current_span("game.start") as span:
            self._require_phase(GamePhase.SETUP, "start")
            if len(self.players) < 2:
                raise ConfigurationError("At least two players are required to start.")
            for player in self.players:
                if player.fleet is None or not player.fleet.ships:
                    raise ConfigurationError(f"Player {player.player_id} has no fleet.")
            if self.board is None:
                self.set_board(Board(self.era.rows, self.era.cols, self.era.terrain or []))

            self.phase = GamePhase.PLACEMENT
            auto_placed: list[Player] = []
            try:
                for player in self.players:
                    if player.role is PlayerRole.AI and not player.fleet.is_placed():
                        auto_placed.append(player)
                        self.auto_place_ships(player)
                unplaced = [p.player_id for p in self.players if not p.fleet.is_placed()]
                if unplaced:
                    raise GameStateError(f"Fleets not placed: {', '.join(unplaced)}")
            except (PlacementError, GameStateError):
                for player in auto_placed:
                    player.clear_placements()
                self.phase = GamePhase.SETUP
                span.set_attribute("error", True)
                raise

            for player in self.players:
                player.prepare_for_battle(self._enemy_ship_sizes(player))

            self.phase = GamePhase.PLAYING
            self.current_player_index = 0
            self.current_turn = 1
            self.winner = None
            self.started_at = time.time()
            span.set_attribute("players", len(self.players))
            self.messages.post(
                MessageType.GAME_START, players=" vs ".join(p.name for p in self.players)
            )
            logger.info(
                "game_started",
                extra={"players": [p.player_id for p in self.players], "mode": self.mode.value},
            )
        self.check_and_trigger_ai_turn()

    # Play ---------------------------------------------------------------------

    def process_player_action(self, action_type: str, payload: Mapping[str, Any]) -> AttackResult:
        """Entry point for the host UI; only ``attack`` is supported."""
        if action_type != "attack":
            raise ValueError(f"Unsupported action {action_type!r}.")
        player = self.current_player
        if player is None or self.phase is not GamePhase.PLAYING:
            raise GameStateError("Game is not in progress.")
        try:
            coord = Coordinate(int(payload["row"]), int(payload["col"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidAttackError(f"Attack payload needs integer row and col: {exc}") from exc
        if self.board is None or not self.board.is_valid_coordinate(coord):
            raise InvalidAttackError(f"({coord.row}, {coord.col}) is outside the board.")
        player.queue_target(coord)
        return self.process_attack(player, player.select_target(player.legal_targets()))

    def process_attack(self, player: Player, coord: Coordinate) -> AttackResult:
        with tracer.start_as_current_span("game.process_attack") as span:
            span.set_attribute("player", player.player_id)
            span.set_attribute("row", coord.row)
            span.set_attribute("col", coord.col)
            if self.phase is not GamePhase.PLAYING:
                logger.error(
                    "attack_rejected_not_playing",
                    extra={"player": player.player_id, "phase": self.phase.value},
                )
                raise GameStateError("Game is not in progress.")
            if self.board is None or not self.board.is_valid_coordinate(coord):
                logger.error(
                    "attack_rejected_out_of_range",
                    extra={"player": player.player_id, "row": coord.row, "col": coord.col},
                )
                raise InvalidAttackError(f"({coord.row}, {coord.col}) is outside the board.")

            result = self.resolve_shot(player, coord)
            span.set_attribute("outcome", result.outcome.value)
            if self.check_game_end():
                self.end_game()
            else:
                self.handle_turn_progression(result.is_hit)
            return result

    def resolve_shot(self, player: Player, coord: Coordinate) -> AttackResult:
        """Resolve one shot and let the firer observe it."""
        result = self.combat.receive_attack(coord, player)
        self.last_result = result
        try:
            player.observe_result(coord, result)
        except TargetingDefectError as exc:
            self.record_diagnostic("targeting-defect", player, coord, str(exc))
            logger.error(
                "targeting_defect",
                extra={"player": player.player_id, "outcome": exc.outcome},
            )
        return result

    def record_diagnostic(
        self, kind: str, player: Player | None, coord: Coordinate | None, detail: str
    ) -> Diagnostic:
        diagnostic = Diagnostic(
            kind=kind,
            player_id=player.player_id if player else None,
            coord=coord,
            detail=detail,
        )
        self.diagnostics.append(diagnostic)
        return diagnostic

    # Turns --------------------------------------------------------------------

    def turn_continues(self, was_hit: bool) -> bool:
        rules = self.rules
        return rules.turn_required and (
            (was_hit and rules.turn_on_hit) or (not was_hit and rules.turn_on_miss)
        )

    def handle_turn_progression(self, was_hit: bool) -> None:
        if self.phase is not GamePhase.PLAYING:
            return
        if self.turn_continues(was_hit):
            logger.debug(
                "turn_continues",
                extra={"player": self.current_player.player_id, "was_hit": was_hit},
            )
            self.check_and_trigger_ai_turn()
            return
        self.next_turn()

    def next_turn(self) -> None:
        """Advance to the next player who still has ships afloat."""
        count = len(self.players)
        for _ in range(count):
            self.current_player_index = (self.current_player_index + 1) % count
            if not self.current_player.is_defeated():
                break
        self.current_turn += 1
        TURN_COUNTER.add(1)
        self.messages.post(
            MessageType.TURN, turn=self.current_turn, player=self.current_player.name
        )
        self.check_and_trigger_ai_turn()

    def check_and_trigger_ai_turn(self) -> None:
        player = self.current_player
        if self.phase is not GamePhase.PLAYING or player is None:
            return
        if player.role is PlayerRole.AI and not player.is_defeated():
            self.execute_ai_turn_queued(player)

    def execute_ai_turn_queued(self, player: Player) -> None:
        """Queue one paced AI move: choose, announce, resolve, then progress."""
        turn: dict[str, Any] = {}

        def choose() -> None:
            if self.phase is not GamePhase.PLAYING or self.current_player is not player:
                turn["skip"] = True
                return
            legal = player.legal_targets()
            if not legal:
                raise GameStateError(f"{player.name} has no legal targets left.")
            turn["coord"] = player.select_target(legal)

        def announce() -> None:
            if "coord" in turn and self.hooks.on_opponent_shot is not None:
                self.hooks.on_opponent_shot(player, turn["coord"])

        def resolve() -> None:
            if "coord" not in turn:
                return
            turn["result"] = self.resolve_shot(player, turn["coord"])
            if self.check_game_end():
                self.end_game()

        def complete() -> None:
            result = turn.get("result")
            if result is not None:
                self.handle_turn_progression(result.is_hit)

        self.actions.enqueue(
            Action(
                kind="ai_attack",
                player_id=player.player_id,
                steps=[
                    ActionStep("choose", choose),
                    ActionStep("announce", announce, delay=self.animation.shot_delay),
                    ActionStep("resolve", resolve, delay=self.animation.result_delay),
                ],
                on_complete=complete,
            )
        )

    # End ----------------------------------------------------------------------

    def surviving_alliances(self) -> list[Alliance]:
        names: list[str] = []
        for player in self.players:
            name = self._player_alliance.get(player.player_id)
            if name is not None and name not in names and not player.is_defeated():
                names.append(name)
        return [self.alliances.get(name) or Alliance(name) for name in names]

    def check_game_end(self) -> bool:
        return self.phase is GamePhase.PLAYING and len(self.surviving_alliances()) <= 1

    def _determine_winner(self) -> Player | None:
        survivors = self.surviving_alliances()
        if len(survivors) != 1:
            return None
        name = survivors[0].name
        for player in self.players:
            if self._player_alliance.get(player.player_id) == name and not player.is_defeated():
                return player
        return None

    def end_game(self) -> None:
        if self._game_over_fired:
            return
        self._game_over_fired = True
        self.winner = self._determine_winner()
        self.phase = GamePhase.FINISHED
        self.ended_at = time.time()
        self.actions.clear()
        self.messages.post(
            MessageType.GAME_END, winner=self.winner.name if self.winner else "none"
        )
        self._cleanup_temporary_alliances()
        logger.info(
            "game_finished",
            extra={
                "winner": self.winner.player_id if self.winner else None,
                "turns": self.current_turn,
            },
        )
        if self.hooks.on_game_over is not None:
            self.hooks.on_game_over(
                GameOverEvent(
                    winner=self.winner,
                    stats={p.player_id: p.stats() for p in self.players},
                    turns=self.current_turn,
                    duration_seconds=self.duration_seconds,
                )
            )

    def _cleanup_temporary_alliances(self) -> None:
        temporary = [name for name, alliance in self.alliances.items() if alliance.is_temporary]
        for name in temporary:
            del self.alliances[name]
        if temporary:
            logger.debug("temporary_alliances_removed", extra={"alliances": temporary})

    # Reporting ----------------------------------------------------------------

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None:
            return 0.0
        return (self.ended_at or time.time()) - self.started_at

    def game_stats(self) -> dict[str, Any]:
        return {
            "players": {p.player_id: p.stats().to_dict() for p in self.players},
            "total_turns": self.current_turn,
            "winner": self.winner.player_id if self.winner else None,
            "duration_seconds": self.duration_seconds,
        }

    def snapshot(self) -> GameState:
        current = self.current_player
        return GameState(
            phase=self.phase,
            mode=self.mode,
            turn=self.current_turn,
            current_player=current.player_id if current else None,
            winner=self.winner.player_id if self.winner else None,
            players=tuple(p.player_id for p in self.players),
            forbidden_targets={
                p.player_id: frozenset(p.forbidden_targets) for p in self.players
            },
        )

    def reset(self) -> None:
        """Return to ``setup`` with the same roster, fleets repaired and unplaced.

        Each fleet gets back exactly the ships it joined with, undoing captures.
        """
        self.actions.clear()
        for player in self.players:
            player.fleet.ships = list(self._rosters[player.player_id])
            player.reset()
        if self.board is not None:
            self.board.clear()
        self.alliances = {
            spec.name: Alliance(spec.name, spec.owner) for spec in self.era.alliances
        }
        for player in self.players:
            self.alliances[self._player_alliance[player.player_id]].add_player(player)
        self.phase = GamePhase.SETUP
        self.current_player_index = 0
        self.current_turn = 0
        self.winner = None
        self.started_at = None
        self.ended_at = None
        self.last_result = None
        self.diagnostics.clear()
        self.messages.clear()
        self._game_over_fired = False
        logger.info("game_reset", extra={"players": len(self.players)})

    def _enemy_ship_sizes(self, player: Player) -> list[int]:
        return [
            ship.size
            for other in self.players
            if not self.is_same_alliance(player, other) and other.fleet is not None
            for ship in other.fleet.ships
        ]

    def _require_phase(self, phase: GamePhase, operation: str) -> None:
        if self.phase is not phase:
            raise GameStateError(f"Cannot {operation} while the game is {self.phase.value}.")
