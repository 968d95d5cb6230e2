"""Game subclass that reports a match-long span and per-shot metrics."""

from __future__ import annotations

import time
from typing import Any

from fleetbattle.engine.combat import AttackResult
from fleetbattle.engine.game import Game
from fleetbattle.engine.player import Player
from fleetbattle.engine.ship import Coordinate
from fleetbattle.telemetry import get_logger, get_tracer, record_game_metric


class InstrumentedGame(Game):
    """Wraps :class:`Game` with tracing, metrics and logging."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._logger = get_logger("fleetbattle.engine")
        self._tracer = get_tracer("fleetbattle.engine")
        self._game_span_cm = None
        self._game_span = None
        self._game_start_time: float | None = None
        self._game_id_counter = 0

    def start_game(self) -> None:
        self._start_game_span()
        with self._tracer.start_as_current_span("fleetbattle.engine.start") as span:
            try:
                super().start_game()
            except Exception as exc:
                record_game_metric(
                    "fleetbattle_game_start_failures_total", 1, {"reason": type(exc).__name__}
                )
                span.set_attribute("error", True)
                self._logger.error("Game start failed: %s", exc)
                self._close_game_span()
                raise
            span.set_attribute("players", len(self.players))
            record_game_metric(
                "fleetbattle_game_started_total", 1, {"players": len(self.players)}
            )
            self._logger.info("Game %d started with %d players", self._game_id_counter, len(self.players))

    def resolve_shot(self, player: Player, coord: Coordinate) -> AttackResult:
        with self._tracer.start_as_current_span("fleetbattle.engine.shot") as span:
            span.set_attribute("game.id", self._game_id_counter)
            span.set_attribute("player", player.player_id)
            span.set_attribute("coord.row", coord.row)
            span.set_attribute("coord.col", coord.col)

            result = super().resolve_shot(player, coord)

            span.set_attribute("shot_outcome", result.outcome.value)
            span.set_attribute("hit", result.is_hit)
            span.set_attribute("sunk", len(result.sunk_ship_ids))

            record_game_metric("fleetbattle_shots_total", 1, {"player": player.player_id})
            record_game_metric(
                "fleetbattle_shots_by_outcome_total",
                1,
                {"player": player.player_id, "outcome": result.outcome.value},
            )
            self._logger.info(
                "shot player=%s coord=%s outcome=%s",
                player.player_id,
                coord.label,
                result.outcome.value,
            )
            return result

    def end_game(self) -> None:
        already_finished = self._game_over_fired
        super().end_game()
        if not already_finished:
            self._finish_game()

    def _start_game_span(self) -> None:
        self._close_game_span()
        self._game_start_time = time.perf_counter()
        self._game_id_counter += 1
        self._game_span_cm = self._tracer.start_as_current_span("fleetbattle.engine.game")
        self._game_span = self._game_span_cm.__enter__()
        self._game_span.set_attribute("game.id", self._game_id_counter)

    def _finish_game(self) -> None:
        duration = (time.perf_counter() - self._game_start_time) if self._game_start_time else 0.0
        winner = self.winner.player_id if self.winner else "none"

        record_game_metric("fleetbattle_game_completed_total", 1, {"winner": winner})
        record_game_metric("fleetbattle_game_duration_seconds", duration, {"winner": winner})

        with self._tracer.start_as_current_span("fleetbattle.engine.game_complete") as span:
            span.set_attribute("game.id", self._game_id_counter)
            span.set_attribute("winner", winner)
            span.set_attribute("turns", self.current_turn)
            span.set_attribute("duration_ms", duration * 1000)
            span.set_attribute("diagnostics", len(self.diagnostics))

        if self._game_span is not None:
            self._game_span.set_attribute("winner", winner)
            self._game_span.set_attribute("turns", self.current_turn)

        self._logger.info(
            "Game finished. Winner=%s turns=%d duration_s=%.3f", winner, self.current_turn, duration
        )
        self._close_game_span()

    def _close_game_span(self) -> None:
        if self._game_span_cm is not None:
            self._game_span_cm.__exit__(None, None, None)
            self._game_span_cm = None
            self._game_span = None
