"""Exception types raised by the combat engine."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Era rules, alliances or fleets are missing or inconsistent."""


class PlacementError(RuntimeError):
    """A fleet could not be laid out within the attempt budget."""

    def __init__(self, player_id: str, ship_name: str, attempts: int) -> None:
        super().__init__(
            f"Could not place {ship_name} for player {player_id} after {attempts} attempts."
        )
        self.player_id = player_id
        self.ship_name = ship_name
        self.attempts = attempts


class GameStateError(RuntimeError):
    """The operation is not allowed in the current game phase."""


class InvalidAttackError(ValueError):
    """Attack coordinates fall outside the board."""


class TargetingDefectError(AssertionError):
    """The targeting machine was fed an outcome the legal-target filter forbids."""

    def __init__(self, outcome: str, row: int, col: int) -> None:
        super().__init__(f"Targeting defect: outcome {outcome!r} at ({row}, {col}).")
        self.outcome = outcome
        self.row = row
        self.col = col
