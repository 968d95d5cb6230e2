"""Era configuration models.

An era bundles everything a match needs before the first shot: board size
and terrain, the alliances and their fleets, turn rules, scoring, the reveal
policy for damaged ships, and optional rules such as ship capture.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

TERRAIN_KINDS = frozenset({"deep", "shallow", "land", "rock", "excluded"})
NAVIGABLE = ("deep", "shallow")


class GameRules(BaseModel):
    """Turn rules every era must state explicitly."""

    model_config = ConfigDict(frozen=True)

    turn_required: bool
    turn_on_hit: bool
    turn_on_miss: bool


class ShipSpec(BaseModel):
    """One ship in an alliance's fleet definition."""

    model_config = ConfigDict(frozen=True)

    name: str
    size: int = Field(ge=1)
    ship_class: str | None = None
    terrain: tuple[str, ...] = NAVIGABLE
    defense: float = Field(default=1.0, ge=0.0)

    @property
    def class_name(self) -> str:
        return self.ship_class or self.name


class AllianceSpec(BaseModel):
    name: str
    owner: str | None = None
    ships: list[ShipSpec] = Field(default_factory=list)


class SizeCategory(BaseModel):
    """Ship sizes in ``[min_size, max_size]`` share a size-hint label."""

    model_config = ConfigDict(frozen=True)

    name: str
    min_size: int = Field(ge=1)
    max_size: int | None = None

    def contains(self, size: int) -> bool:
        if size < self.min_size:
            return False
        return self.max_size is None or size <= self.max_size


DEFAULT_SIZE_CATEGORIES = (
    SizeCategory(name="small", min_size=1, max_size=2),
    SizeCategory(name="medium", min_size=3, max_size=3),
    SizeCategory(name="large", min_size=4),
)


class RevealPolicy(BaseModel):
    """How much observers learn about a damaged ship that is still afloat.

    A ship that has taken ``size_hint_hits`` hits reveals its size class; one
    whose health fraction drops to ``critical_health`` or below is reported
    as critically damaged. Sinking always reveals the ship fully.
    """

    model_config = ConfigDict(frozen=True)

    size_hint_hits: int = Field(default=2, ge=1)
    critical_health: float = Field(default=0.34, ge=0.0, le=1.0)


class ScoringRules(BaseModel):
    model_config = ConfigDict(frozen=True)

    hit_points: int = 1
    sink_points: int = 10


class AnimationSettings(BaseModel):
    """Presentation delays, in seconds, inserted between AI action steps."""

    shot_delay: float = Field(default=0.5, ge=0.0)
    result_delay: float = Field(default=0.3, ge=0.0)
    speed_factor: float = Field(default=1.0, gt=0.0)

    @classmethod
    def headless(cls) -> "AnimationSettings":
        return cls(shot_delay=0.0, result_delay=0.0)


class EraConfig(BaseModel):
    """Complete configuration for one kind of match."""

    name: str = "classic"
    rows: int = Field(default=10, ge=1)
    cols: int = Field(default=10, ge=1, le=26)
    terrain: list[list[str]] | None = None
    max_players: int = Field(default=2, ge=2)
    game_rules: GameRules
    alliances: list[AllianceSpec] = Field(default_factory=list)
    size_categories: tuple[SizeCategory, ...] = DEFAULT_SIZE_CATEGORIES
    reveal: RevealPolicy = Field(default_factory=RevealPolicy)
    scoring: ScoringRules = Field(default_factory=ScoringRules)
    capture_chance: float = Field(default=0.0, ge=0.0, le=1.0)
    max_turn_seconds: float | None = 30.0
    placement_attempts: int = Field(default=100, ge=1)
    messages: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_terrain(self) -> "EraConfig":
        if self.terrain is None:
            return self
        if len(self.terrain) != self.rows or any(len(row) != self.cols for row in self.terrain):
            raise ValueError(f"terrain grid must be {self.rows}x{self.cols}")
        unknown = {cell for row in self.terrain for cell in row} - TERRAIN_KINDS
        if unknown:
            raise ValueError(f"unknown terrain kinds: {sorted(unknown)}")
        return self

    def alliance(self, name: str) -> AllianceSpec | None:
        for spec in self.alliances:
            if spec.name == name:
                return spec
        return None

    def size_category(self, size: int) -> str:
        for category in self.size_categories:
            if category.contains(size):
                return category.name
        return "medium"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EraConfig":
        """Validate raw era data, failing fast with a :class:`ConfigurationError`."""
        if "game_rules" not in data:
            raise ConfigurationError("Era configuration must define game_rules.")
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            logger.error("era_config_invalid", extra={"errors": exc.error_count()})
            raise ConfigurationError(f"Invalid era configuration: {exc}") from exc

    @classmethod
    def from_file(cls, path: str | Path) -> "EraConfig":
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Cannot read era configuration {path}: {exc}") from exc
        return cls.from_mapping(data)


CLASSIC_FLEET = (
    ShipSpec(name="Carrier", size=5),
    ShipSpec(name="Battleship", size=4),
    ShipSpec(name="Cruiser", size=3),
    ShipSpec(name="Submarine", size=3),
    ShipSpec(name="Destroyer", size=2),
)


def classic_era(**overrides: Any) -> EraConfig:
    """The traditional 10x10, two-alliance, alternating-turn era."""
    data: dict[str, Any] = {
        "name": "classic",
        "game_rules": GameRules(turn_required=True, turn_on_hit=False, turn_on_miss=False),
        "alliances": [
            AllianceSpec(name="Blue", ships=list(CLASSIC_FLEET)),
            AllianceSpec(name="Red", ships=list(CLASSIC_FLEET)),
        ],
    }
    data.update(overrides)
    return EraConfig(**data)
