"""AI player tests."""

from __future__ import annotations

import random

import pytest

from fleetbattle.ai.player import AiPlayer
from fleetbattle.ai.targeting import SkillLevel, TargetingStrategy
from fleetbattle.engine.board import Board
from fleetbattle.engine.combat import AttackOutcome, AttackResult, ShipHit
from fleetbattle.engine.errors import GameStateError
from fleetbattle.engine.player import PlayerRole
from fleetbattle.engine.ship import Coordinate, RevealLevel


def _hit(coord: Coordinate, sunk: bool) -> AttackResult:
    ship_hit = ShipHit(
        ship_id="ship-x",
        owner_id="enemy",
        ship_name="Destroyer",
        cell_index=0,
        damage=1.0,
        ship_health=0.0 if sunk else 0.5,
        ship_sunk=sunk,
        reveal_level=RevealLevel.FULL if sunk else RevealLevel.HIT,
    )
    outcome = AttackOutcome.DESTROYED if sunk else AttackOutcome.HIT
    return AttackResult(outcome, coord, "ai", (ship_hit,), cell_fully_destroyed=True)


def test_ai_player_accepts_string_settings() -> None:
    ai = AiPlayer("ai", strategy="radial", skill="expert", rng=random.Random(0))
    assert ai.role is PlayerRole.AI
    assert ai.strategy is TargetingStrategy.RADIAL
    assert ai.skill is SkillLevel.EXPERT
    assert ai.name == "ai"


def test_choose_move_respects_forbidden_targets() -> None:
    ai = AiPlayer("ai", rng=random.Random(1), board=Board.open_water(2, 2))
    ai.forbid(Coordinate(0, 0))
    ai.forbid(Coordinate(0, 1))
    ai.forbid(Coordinate(1, 0))
    assert ai.choose_move() == Coordinate(1, 1)


def test_attached_board_bounds_radial_search() -> None:
    ai = AiPlayer("ai", strategy=TargetingStrategy.RADIAL, rng=random.Random(2))
    ai.attach_board(Board.open_water(5, 5))
    assert ai.choose_move() == Coordinate(2, 2)


def test_observe_result_drives_hunt_and_sink() -> None:
    ai = AiPlayer("ai", rng=random.Random(3), board=Board.open_water(10, 10))
    ai.observe_result(Coordinate(5, 5), _hit(Coordinate(5, 5), sunk=False))
    assert ai.ai_stats()["hunting"] is True
    assert ai.choose_move() in Coordinate(5, 5).orthogonal_neighbours()

    ai.observe_result(Coordinate(5, 6), _hit(Coordinate(5, 6), sunk=True))
    stats = ai.ai_stats()
    assert stats["hunting"] is False
    assert stats["ships_sunk"] == 1
    assert stats["strategy"] == "random"


def test_reset_clears_targeting_memory() -> None:
    ai = AiPlayer("ai", rng=random.Random(4), board=Board.open_water(10, 10))
    ai.observe_result(Coordinate(5, 5), _hit(Coordinate(5, 5), sunk=False))
    ai.forbid(Coordinate(5, 5))

    ai.reset()
    assert ai.forbidden_targets == set()
    assert ai.ai_stats()["shots"] == 0
    assert ai.ai_stats()["queued_targets"] == 0


def test_ai_refuses_host_chosen_targets() -> None:
    ai = AiPlayer("ai", rng=random.Random(5), board=Board.open_water(3, 3))
    with pytest.raises(GameStateError):
        ai.queue_target(Coordinate(0, 0))


def test_prepare_for_battle_sets_search_spacing() -> None:
    ai = AiPlayer("ai", rng=random.Random(6))
    assert ai.targeter.min_ship_length == 2

    ai.prepare_for_battle([5, 3, 1])
    assert ai.targeter.min_ship_length == 1

    ai.prepare_for_battle([])
    assert ai.targeter.min_ship_length == 1
