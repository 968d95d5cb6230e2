"""High-level gameplay tests."""

from __future__ import annotations

import random

import pytest

from fleetbattle.ai.player import AiPlayer
from fleetbattle.engine.board import Board
from fleetbattle.engine.combat import AttackOutcome
from fleetbattle.engine.errors import (
    ConfigurationError,
    GameStateError,
    InvalidAttackError,
    PlacementError,
)
from fleetbattle.engine.events import EventHooks, GameOverEvent
from fleetbattle.engine.game import Game, GamePhase
from fleetbattle.engine.messages import MessageType
from fleetbattle.engine.player import HumanPlayer, Player
from fleetbattle.engine.rules import (
    AllianceSpec,
    AnimationSettings,
    EraConfig,
    GameRules,
    ShipSpec,
    classic_era,
)
from fleetbattle.engine.ship import Coordinate, Orientation, Ship

ALTERNATE = GameRules(turn_required=True, turn_on_hit=False, turn_on_miss=False)


def _era(**overrides) -> EraConfig:
    data = {
        "rows": 10,
        "cols": 10,
        "max_players": 3,
        "game_rules": ALTERNATE,
        "alliances": [
            AllianceSpec(name="Blue", ships=[ShipSpec(name="Destroyer", size=2)]),
            AllianceSpec(name="Red", ships=[ShipSpec(name="Destroyer", size=2)]),
            AllianceSpec(name="Green", owner="admiral", ships=[ShipSpec(name="Destroyer", size=2)]),
        ],
    }
    data.update(overrides)
    return EraConfig(**data)


def _game(era: EraConfig | None = None, **kwargs) -> Game:
    kwargs.setdefault("sleep", lambda _: None)
    kwargs.setdefault("animation", AnimationSettings.headless())
    game = Game(era or _era(), rng_seed=7, **kwargs)
    game.set_board(Board.open_water(game.era.rows, game.era.cols))
    return game


def _join(game: Game, player: Player, alliance: str, *layout: tuple[int, int, int]) -> list[Ship]:
    """Add ``player`` with one horizontal ship per (size, row, col)."""
    ships = [Ship(f"{player.player_id}-{index}", size) for index, (size, _, _) in enumerate(layout)]
    game.add_player_with_fleet(player, alliance, ships)
    for ship, (size, row, col) in zip(ships, layout):
        cells = Orientation.HORIZONTAL.cells(Coordinate(row, col), size)
        assert game.register_ship_placement(player, ship, cells, Orientation.HORIZONTAL)
    return ships


def _attack(game: Game, row: int, col: int):
    return game.process_player_action("attack", {"row": row, "col": col})


def test_game_requires_era_rules() -> None:
    with pytest.raises(ConfigurationError):
        Game(None)
    with pytest.raises(ConfigurationError):
        Game({"rows": 10, "cols": 10})


def test_add_player_validates_roster() -> None:
    game = _game(_era(max_players=2))
    game.add_player(Player("a"), "Blue")

    with pytest.raises(ConfigurationError):
        game.add_player(Player("x"), "Purple")
    with pytest.raises(ConfigurationError):
        game.add_player(Player("a"), "Red")

    game.add_player(Player("b"), "Red")
    with pytest.raises(ConfigurationError):
        game.add_player(Player("c"), "Green")


def test_add_player_builds_fleet_from_alliance() -> None:
    game = _game()
    human = game.add_player(HumanPlayer("you"), "Blue")
    assert [ship.name for ship in human.fleet.ships] == ["Destroyer"]
    assert human.board is game.board
    assert human.max_turn_seconds == 30.0
    assert game.alliance_of(human).name == "Blue"


def test_start_game_needs_two_players() -> None:
    game = _game()
    _join(game, Player("a"), "Blue", (1, 0, 0))
    with pytest.raises(ConfigurationError):
        game.start_game()
    assert game.phase is GamePhase.SETUP


def test_start_game_rolls_back_when_placement_fails() -> None:
    era = _era(
        rows=3,
        cols=3,
        placement_attempts=5,
        alliances=[
            AllianceSpec(name="Blue", ships=[ShipSpec(name="Destroyer", size=2)]),
            AllianceSpec(name="Red", ships=[ShipSpec(name="Carrier", size=4)]),
        ],
    )
    game = Game(era, rng_seed=2, sleep=lambda _: None)
    first = game.add_player(AiPlayer("first"), "Blue")
    second = game.add_player(AiPlayer("second"), "Red")

    with pytest.raises(PlacementError):
        game.start_game()

    assert game.phase is GamePhase.SETUP
    assert first.placements == {}
    assert second.placements == {}
    assert not any(ship.is_placed for ship in first.fleet.ships)


def test_start_game_rejects_unplaced_human_fleet() -> None:
    game = _game()
    game.add_player(HumanPlayer("you"), "Blue")
    ai = game.add_player(AiPlayer("ai"), "Red")

    with pytest.raises(GameStateError):
        game.start_game()
    assert game.phase is GamePhase.SETUP
    assert ai.placements == {}


def test_auto_place_ships_covers_every_ship() -> None:
    game = Game(classic_era(), rng_seed=4)
    player = game.add_player(Player("p"), "Blue")
    game.set_board(Board.open_water(10, 10))
    game.auto_place_ships(player)

    assert player.fleet.is_placed()
    assert len(player.placements) == 17


@pytest.mark.parametrize(
    ("required", "on_hit", "on_miss", "was_hit", "expected"),
    [
        (True, True, False, True, True),
        (True, True, False, False, False),
        (True, False, True, False, True),
        (True, False, False, True, False),
        (False, True, True, True, False),
        (False, True, True, False, False),
    ],
)
def test_turn_continues_predicate(
    required: bool, on_hit: bool, on_miss: bool, was_hit: bool, expected: bool
) -> None:
    rules = GameRules(turn_required=required, turn_on_hit=on_hit, turn_on_miss=on_miss)
    game = _game(_era(game_rules=rules))
    assert game.turn_continues(was_hit) is expected


def test_two_player_game_alternates_and_finishes() -> None:
    events: list[GameOverEvent] = []
    game = _game(hooks=EventHooks(on_game_over=events.append))
    alice = Player("a")
    bob = Player("b")
    _join(game, alice, "Blue", (1, 0, 0))
    _join(game, bob, "Red", (2, 3, 3))
    game.start_game()

    assert game.phase is GamePhase.PLAYING
    assert game.current_player is alice
    assert game.messages.history[0].kind is MessageType.GAME_START

    assert _attack(game, 3, 3).outcome is AttackOutcome.HIT
    assert game.current_player is bob
    assert game.current_turn == 2

    assert _attack(game, 5, 5).outcome is AttackOutcome.MISS
    assert game.current_player is alice

    assert _attack(game, 3, 4).outcome is AttackOutcome.DESTROYED
    assert game.phase is GamePhase.FINISHED
    assert game.winner is alice
    assert len(events) == 1
    assert events[0].winner is alice
    assert events[0].stats["a"].hits == 2

    game.end_game()
    assert len(events) == 1

    with pytest.raises(GameStateError):
        _attack(game, 0, 0)


def test_turn_kept_on_hit_when_rules_allow() -> None:
    rules = GameRules(turn_required=True, turn_on_hit=True, turn_on_miss=False)
    game = _game(_era(game_rules=rules))
    alice = Player("a")
    _join(game, alice, "Blue", (1, 0, 0))
    _join(game, Player("b"), "Red", (3, 3, 3))
    game.start_game()

    _attack(game, 3, 3)
    assert game.current_player is alice
    _attack(game, 8, 8)
    assert game.current_player is not alice


def test_attack_input_errors() -> None:
    game = _game()
    _join(game, Player("a"), "Blue", (1, 0, 0))
    _join(game, Player("b"), "Red", (1, 5, 5))

    with pytest.raises(GameStateError):
        _attack(game, 0, 0)

    game.start_game()
    with pytest.raises(ValueError):
        game.process_player_action("move", {"row": 0, "col": 0})
    with pytest.raises(InvalidAttackError):
        game.process_player_action("attack", {"row": "x"})
    with pytest.raises(InvalidAttackError):
        _attack(game, 10, 0)
    assert game.current_player.player_id == "a"


def test_one_shot_can_end_the_game_for_several_alliances() -> None:
    game = _game()
    alice = Player("a")
    _join(game, alice, "Blue", (1, 0, 0))
    _join(game, Player("b"), "Red", (1, 5, 5))
    _join(game, Player("c"), "Green", (1, 5, 5))
    game.start_game()

    result = _attack(game, 5, 5)
    assert result.outcome is AttackOutcome.DESTROYED
    assert len(result.sunk_ship_ids) == 2
    assert game.phase is GamePhase.FINISHED
    assert game.winner is alice


def test_mutual_annihilation_has_no_winner() -> None:
    game = _game()
    alice = Player("a")
    bob = Player("b")
    _join(game, alice, "Blue", (1, 0, 0))
    _join(game, bob, "Red", (1, 5, 5))
    game.start_game()

    for player in (alice, bob):
        for ship in player.fleet.ships:
            ship.receive_hit(0)

    assert game.check_game_end()
    game.end_game()
    assert game.winner is None
    assert game.messages.current() == "Game over. Winner: none."


def test_next_turn_skips_defeated_players() -> None:
    game = _game()
    _join(game, Player("a"), "Blue", (1, 0, 0))
    bob = Player("b")
    _join(game, bob, "Red", (1, 2, 2))
    carol = Player("c")
    _join(game, carol, "Green", (2, 7, 7))
    game.start_game()

    _attack(game, 2, 2)
    assert bob.is_defeated()
    assert game.phase is GamePhase.PLAYING
    assert game.current_player is carol


def test_temporary_alliances_removed_at_game_end() -> None:
    game = _game()
    _join(game, Player("a"), "Blue", (1, 0, 0))
    _join(game, Player("c"), "Green", (1, 5, 5))
    game.start_game()
    _attack(game, 5, 5)

    assert game.phase is GamePhase.FINISHED
    assert list(game.alliances) == ["Green"]


def test_ai_turn_runs_after_human_move() -> None:
    shots: list[tuple[str, Coordinate]] = []
    game = _game(
        hooks=EventHooks(on_opponent_shot=lambda player, coord: shots.append((player.player_id, coord)))
    )
    human = HumanPlayer("you")
    ai = AiPlayer("ai", rng=random.Random(5))
    _join(game, human, "Blue", (2, 0, 0), (3, 9, 0))
    _join(game, ai, "Red", (2, 5, 5))
    game.start_game()

    assert _attack(game, 9, 9).outcome is AttackOutcome.MISS
    assert ai.shots == 1
    assert len(shots) == 1 and shots[0][0] == "ai"
    assert game.current_player is human
    assert game.current_turn == 3
    assert not game.actions.in_flight


def test_ai_versus_ai_plays_to_completion() -> None:
    events: list[GameOverEvent] = []
    game = Game(
        classic_era(),
        rng_seed=11,
        hooks=EventHooks(on_game_over=events.append),
        animation=AnimationSettings.headless(),
        sleep=lambda _: None,
    )
    north = game.add_player(AiPlayer("north", strategy="sparse_grid", rng=random.Random(1)), "Blue")
    south = game.add_player(AiPlayer("south", strategy="radial", rng=random.Random(2)), "Red")
    game.start_game()

    assert game.phase is GamePhase.FINISHED
    assert game.winner in (north, south)
    loser = south if game.winner is north else north
    assert loser.is_defeated()
    assert game.diagnostics == []
    assert len(events) == 1
    assert game.winner.hits >= 17


def test_ai_steps_are_paced_through_sleep() -> None:
    sleeps: list[float] = []
    game = Game(classic_era(), rng_seed=3, sleep=sleeps.append)
    game.add_player(AiPlayer("north", rng=random.Random(3)), "Blue")
    game.add_player(AiPlayer("south", rng=random.Random(4)), "Red")
    game.start_game()

    assert game.phase is GamePhase.FINISHED
    assert sleeps[:2] == [0.5, 0.3]


def test_ai_without_targets_is_a_state_error() -> None:
    era = _era(rows=1, cols=2)
    game = _game(era)
    ai = AiPlayer("ai")
    _join(game, ai, "Blue", (1, 0, 0))
    _join(game, HumanPlayer("you"), "Red", (1, 0, 1))
    ai.forbid(Coordinate(0, 0))
    ai.forbid(Coordinate(0, 1))

    with pytest.raises(GameStateError):
        game.start_game()


def test_targeting_defect_is_recorded_not_raised() -> None:
    game = _game()
    ai = AiPlayer("ai")
    _join(game, ai, "Blue", (1, 0, 0))
    _join(game, Player("b"), "Red", (2, 3, 3))

    game.resolve_shot(ai, Coordinate(3, 3))
    result = game.resolve_shot(ai, Coordinate(3, 3))

    assert result.outcome is AttackOutcome.ALL_DESTROYED
    assert [d.kind for d in game.diagnostics] == ["all-destroyed", "targeting-defect"]


def test_snapshot_and_stats() -> None:
    game = _game()
    _join(game, Player("a"), "Blue", (1, 0, 0))
    _join(game, Player("b"), "Red", (2, 3, 3))
    game.start_game()
    _attack(game, 6, 6)

    state = game.snapshot()
    assert state.phase is GamePhase.PLAYING
    assert state.current_player == "b"
    assert state.players == ("a", "b")
    assert state.forbidden_targets["a"] == frozenset({Coordinate(6, 6)})

    stats = game.game_stats()
    assert stats["players"]["a"]["misses"] == 1
    assert stats["winner"] is None


def test_reset_returns_to_setup() -> None:
    game = _game()
    alice = Player("a")
    bob = Player("b")
    _join(game, alice, "Blue", (1, 0, 0))
    (target,) = _join(game, bob, "Red", (1, 3, 3))
    game.start_game()
    _attack(game, 3, 3)
    assert game.phase is GamePhase.FINISHED

    game.reset()
    assert game.phase is GamePhase.SETUP
    assert game.winner is None
    assert alice.forbidden_targets == set()
    assert alice.hits == 0
    assert target.health == [1.0]
    assert not bob.fleet.is_placed()
    assert set(game.alliances) == {"Blue", "Red", "Green"}

    game.auto_place_ships(alice)
    game.auto_place_ships(bob)
    game.start_game()
    assert game.phase is GamePhase.PLAYING


def test_reset_returns_captured_ships_to_their_fleets() -> None:
    game = _game(_era(capture_chance=1.0))
    alice = Player("a")
    bob = Player("b")
    (flagship,) = _join(game, alice, "Blue", (1, 0, 0))
    prize, escort = _join(game, bob, "Red", (1, 3, 3), (2, 7, 7))
    game.start_game()

    assert _attack(game, 3, 3).ships[0].captured
    assert len(alice.fleet) == 2
    assert len(bob.fleet) == 1

    game.reset()
    assert alice.fleet.ships == [flagship]
    assert bob.fleet.ships == [prize, escort]
    assert prize.health == [1.0]
    assert not prize.is_placed
    assert alice.placements == {}


def test_host_moves_go_through_select_target() -> None:
    game = _game()
    alice = Player("a")
    bob = Player("b")
    _join(game, alice, "Blue", (1, 0, 0))
    _join(game, bob, "Red", (2, 3, 3))
    game.start_game()

    _attack(game, 5, 5)
    _attack(game, 6, 6)
    assert game.current_player is alice

    with pytest.raises(GameStateError):
        _attack(game, 5, 5)
    assert game.current_player is alice
    assert alice.misses == 1
    assert alice.pending_target is None


def test_ai_search_spacing_follows_smallest_enemy_ship() -> None:
    game = _game()
    _join(game, Player("you"), "Blue", (1, 0, 0), (3, 5, 0))
    scout = AiPlayer("scout", strategy="sparse_grid", rng=random.Random(1))
    fixed = AiPlayer("fixed", strategy="sparse_grid", min_ship_length=3, rng=random.Random(2))
    _join(game, scout, "Red", (2, 5, 5))
    _join(game, fixed, "Green", (2, 8, 5))
    game.start_game()

    assert scout.targeter.min_ship_length == 1
    assert fixed.targeter.min_ship_length == 3
