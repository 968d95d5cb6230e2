"""A player's collection of ships."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from .errors import ConfigurationError
from .rules import ShipSpec
from .ship import Ship

logger = logging.getLogger(__name__)


@dataclass
class Fleet:
    """Ordered ships belonging to one owner."""

    owner: str
    ships: list[Ship] = field(default_factory=list)

    @classmethod
    def from_specs(cls, owner: str, specs: Iterable[ShipSpec]) -> Fleet:
        """Build a fleet from ship definitions; an empty list is a configuration error."""
        fleet = cls(owner=owner)
        fleet.add_ships(specs)
        if not fleet.ships:
            raise ConfigurationError(f"No ships configured for fleet of {owner}.")
        return fleet

    def add_ships(self, specs: Iterable[ShipSpec]) -> None:
        """Bulk assembly from configuration; bypasses the defeated-fleet check."""
        self.ships.extend(Ship.from_spec(spec) for spec in specs)

    def add_ship(self, ship: Ship) -> bool:
        """Append a captured ``ship`` unless this fleet is already defeated."""
        if self.is_defeated():
            logger.warning(
                "fleet_add_rejected_defeated", extra={"owner": self.owner, "ship": ship.name}
            )
            return False
        self.ships.append(ship)
        return True

    def remove_ship(self, ship: Ship) -> bool:
        for index, existing in enumerate(self.ships):
            if existing is ship:
                del self.ships[index]
                return True
        return False

    def get_ship(self, ship_id: str) -> Ship | None:
        for ship in self.ships:
            if ship.ship_id == ship_id:
                return ship
        return None

    def is_defeated(self) -> bool:
        return not self.ships or all(ship.is_sunk() for ship in self.ships)

    def is_placed(self) -> bool:
        return bool(self.ships) and all(ship.is_placed for ship in self.ships)

    def afloat(self) -> list[Ship]:
        return [ship for ship in self.ships if not ship.is_sunk()]

    def health(self) -> float:
        """Mean health fraction across all ships."""
        if not self.ships:
            return 0.0
        return sum(ship.health_fraction() for ship in self.ships) / len(self.ships)

    def reset(self) -> None:
        for ship in self.ships:
            ship.reset()

    def __len__(self) -> int:
        return len(self.ships)
