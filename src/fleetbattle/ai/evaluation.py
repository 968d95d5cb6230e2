"""Headless benchmarking of targeting strategies.

Each evaluation game pits the AI under test against a fleet that never fires
back: the era's turn rules keep the turn with the tester on hit and on miss,
so the number of shots until the fleet is gone measures search efficiency.
"""

from __future__ import annotations

import argparse
import json
import logging
import random
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Sequence

import numpy as np
from opentelemetry.instrumentation.logging import LoggingInstrumentor

from fleetbattle.ai.player import AiPlayer
from fleetbattle.ai.targeting import SkillLevel, TargetingStrategy
from fleetbattle.engine.game import Game, GamePhase
from fleetbattle.engine.rules import AnimationSettings, EraConfig, GameRules, classic_era
from fleetbattle.telemetry import TelemetryConfig, get_meter, get_tracer, init_telemetry

logger = logging.getLogger(__name__)

SOLO_RULES = GameRules(turn_required=True, turn_on_hit=True, turn_on_miss=True)


@dataclass
class EvaluationConfig:
    strategy: str = TargetingStrategy.SPARSE_GRID.value
    skill: str = SkillLevel.COMPETENT.value
    games: int = 50
    seed: int | None = 7
    save_dir: str | None = None


@dataclass
class GameRecord:
    seed: int
    shots: int
    hits: int
    misses: int
    accuracy: float
    diagnostics: int


@dataclass
class EvaluationSummary:
    strategy: str
    skill: str
    games: int
    mean_shots: float
    std_shots: float
    median_shots: float
    min_shots: int
    max_shots: int
    mean_accuracy: float
    diagnostics: int
    records: list[GameRecord] = field(default_factory=list)

    def to_dict(self, include_records: bool = False) -> dict[str, Any]:
        data = asdict(self)
        if not include_records:
            data.pop("records")
        return data


class StrategyEvaluator:
    """Runs solo games for one strategy and summarises shots-to-win."""

    def __init__(self, config: EvaluationConfig, era: EraConfig | None = None) -> None:
        self.config = config
        self.era = (era or classic_era()).model_copy(update={"game_rules": SOLO_RULES})
        self.tracer = get_tracer("fleetbattle.ai.evaluation")
        self.meter = get_meter()
        self.shots_hist = self.meter.create_histogram(
            "fleetbattle_eval_shots_to_win",
            unit="1",
            description="Shots needed to sink a passive fleet",
        )
        self.accuracy_hist = self.meter.create_histogram(
            "fleetbattle_eval_accuracy",
            unit="%",
            description="Hit percentage over an evaluation game",
        )
        self.records: list[GameRecord] = []

    def play_one(self, seed: int) -> GameRecord:
        with self.tracer.start_as_current_span("evaluate_game") as span:
            game = Game(
                self.era,
                rng_seed=seed,
                animation=AnimationSettings.headless(),
                sleep=lambda _: None,
            )
            tester = AiPlayer(
                "tester",
                strategy=self.config.strategy,
                skill=self.config.skill,
                rng=random.Random(seed),
            )
            target = AiPlayer("target", skill=SkillLevel.NOVICE, rng=random.Random(seed + 1))
            alliances = [spec.name for spec in self.era.alliances]
            game.add_player(tester, alliances[0])
            game.add_player(target, alliances[1])
            game.start_game()

            if game.phase is not GamePhase.FINISHED:
                raise RuntimeError(f"Evaluation game {seed} did not finish.")
            record = GameRecord(
                seed=seed,
                shots=tester.shots,
                hits=tester.hits,
                misses=tester.misses,
                accuracy=tester.accuracy,
                diagnostics=len(game.diagnostics),
            )
            span.set_attribute("eval.seed", seed)
            span.set_attribute("eval.shots", record.shots)
            span.set_attribute("eval.accuracy", record.accuracy)
            attrs = {"strategy": self.config.strategy, "skill": self.config.skill}
            self.shots_hist.record(record.shots, attrs)
            self.accuracy_hist.record(record.accuracy, attrs)
            return record

    def run(self) -> EvaluationSummary:
        base_seed = self.config.seed if self.config.seed is not None else random.randrange(2**31)
        self.records = [self.play_one(base_seed + index * 2) for index in range(self.config.games)]
        summary = summarise(self.config.strategy, self.config.skill, self.records)
        logger.info("evaluation_complete", extra=summary.to_dict())
        if self.config.save_dir:
            self._save(summary)
        return summary

    def _save(self, summary: EvaluationSummary) -> Path:
        path = Path(self.config.save_dir) / f"eval_{self.config.strategy}_{self.config.skill}.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"config": asdict(self.config), "summary": summary.to_dict(include_records=True)}
        path.write_text(json.dumps(payload, indent=2))
        return path


def summarise(strategy: str, skill: str, records: Sequence[GameRecord]) -> EvaluationSummary:
    if not records:
        raise ValueError("No evaluation games were played.")
    shots = np.array([r.shots for r in records], dtype=np.float64)
    accuracy = np.array([r.accuracy for r in records], dtype=np.float64)
    return EvaluationSummary(
        strategy=strategy,
        skill=skill,
        games=len(records),
        mean_shots=float(np.mean(shots)),
        std_shots=float(np.std(shots)),
        median_shots=float(np.median(shots)),
        min_shots=int(np.min(shots)),
        max_shots=int(np.max(shots)),
        mean_accuracy=float(np.mean(accuracy)),
        diagnostics=sum(r.diagnostics for r in records),
        records=list(records),
    )


def compare_strategies(
    strategies: Sequence[str], games: int, seed: int | None = 7, skill: str = "competent"
) -> dict[str, EvaluationSummary]:
    return {
        name: StrategyEvaluator(
            EvaluationConfig(strategy=name, skill=skill, games=games, seed=seed)
        ).run()
        for name in strategies
    }


def _configure_telemetry() -> None:
    config = TelemetryConfig.from_env(service_name="fleetbattle-evaluator", service_namespace="ai")
    init_telemetry(config)
    LoggingInstrumentor().instrument()


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Benchmark AI targeting strategies")
    parser.add_argument(
        "--strategy",
        choices=[s.value for s in TargetingStrategy] + ["all"],
        default="all",
    )
    parser.add_argument("--skill", choices=[s.value for s in SkillLevel], default="competent")
    parser.add_argument("--games", type=int, default=50)
    parser.add_argument("--seed", type=int, default=7)
    parser.add_argument("--save-dir", type=str, default=None)
    parser.add_argument(
        "--telemetry",
        action="store_true",
        help="Export traces, metrics and logs using the OTEL_* environment.",
    )
    args = parser.parse_args(argv)

    if args.telemetry:
        _configure_telemetry()

    names = [s.value for s in TargetingStrategy] if args.strategy == "all" else [args.strategy]
    for name in names:
        config = EvaluationConfig(
            strategy=name, skill=args.skill, games=args.games, seed=args.seed, save_dir=args.save_dir
        )
        summary = StrategyEvaluator(config).run()
        print(
            f"{name:<12} games={summary.games} mean_shots={summary.mean_shots:.1f} "
            f"std={summary.std_shots:.1f} min={summary.min_shots} max={summary.max_shots} "
            f"accuracy={summary.mean_accuracy:.1f}%"
        )


if __name__ == "__main__":
    main()
