"""AI opponent: a Player whose moves come from a Targeter."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Any, Sequence

from fleetbattle.engine.combat import AttackOutcome
from fleetbattle.engine.errors import GameStateError
from fleetbattle.engine.player import Player, PlayerRole
from fleetbattle.engine.ship import Coordinate

from .targeting import SkillLevel, Targeter, TargetingStrategy

if TYPE_CHECKING:
    from fleetbattle.engine.board import Board
    from fleetbattle.engine.combat import AttackResult

logger = logging.getLogger(__name__)

DEFAULT_MIN_SHIP_LENGTH = 2


class AiPlayer(Player):
    """Computer opponent. Owns its targeting memory; reset between games."""

    role = PlayerRole.AI

    def __init__(
        self,
        player_id: str,
        name: str | None = None,
        *,
        strategy: TargetingStrategy | str = TargetingStrategy.RANDOM,
        skill: SkillLevel | str = SkillLevel.COMPETENT,
        difficulty: float = 1.0,
        rng: random.Random | None = None,
        min_ship_length: int | None = None,
        clustering_chance: float = 0.35,
        board: Board | None = None,
    ) -> None:
        super().__init__(player_id, name, difficulty=difficulty, board=board)
        self.targeter = Targeter(
            strategy=TargetingStrategy(strategy),
            rng=rng,
            skill=SkillLevel(skill),
            min_ship_length=min_ship_length or DEFAULT_MIN_SHIP_LENGTH,
            clustering_chance=clustering_chance,
        )
        self.fixed_min_ship_length = min_ship_length
        if board is not None:
            self.targeter.bind_board(board.rows, board.cols)

    @property
    def strategy(self) -> TargetingStrategy:
        return self.targeter.strategy

    @property
    def skill(self) -> SkillLevel:
        return self.targeter.skill

    def attach_board(self, board: Board) -> None:
        super().attach_board(board)
        self.targeter.bind_board(board.rows, board.cols)

    def queue_target(self, coord: Coordinate) -> None:
        raise GameStateError(f"{self.name} chooses its own targets; AI moves are queued.")

    def select_target(self, legal_targets: Sequence[Coordinate]) -> Coordinate:
        return self.targeter.select_target(legal_targets)

    def prepare_for_battle(self, enemy_ship_sizes: Sequence[int]) -> None:
        """Space the search grid by the shortest enemy ship unless fixed at creation."""
        if self.fixed_min_ship_length is not None or not enemy_ship_sizes:
            return
        self.targeter.min_ship_length = min(enemy_ship_sizes)
        logger.debug(
            "search_spacing_derived",
            extra={"player": self.player_id, "min_ship_length": self.targeter.min_ship_length},
        )

    def choose_move(self) -> Coordinate:
        return self.select_target(self.legal_targets())

    def observe_result(self, coord: Coordinate, result: AttackResult) -> None:
        """Feed our own shot's outcome to the targeting memory.

        Raises :class:`TargetingDefectError` for ``all-destroyed`` and
        ``invalid`` outcomes; the orchestrator records those as diagnostics.
        """
        ship_sunk = result.outcome is AttackOutcome.DESTROYED and bool(result.sunk_ship_ids)
        self.targeter.observe_result(coord, result.outcome, ship_sunk=ship_sunk)

    def ai_stats(self) -> dict[str, Any]:
        memory = self.targeter.memory
        return {
            "strategy": self.strategy.value,
            "skill": self.skill.value,
            "shots": memory.shots,
            "ships_sunk": memory.ships_sunk,
            "hunting": memory.is_hunting,
            "queued_targets": len(memory.queue),
            "phase": memory.phase.value,
        }

    def reset(self) -> None:
        super().reset()
        self.targeter.reset()
        logger.debug("ai_memory_reset", extra={"player": self.player_id})
