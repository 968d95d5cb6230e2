"""Tests for fleets and alliances."""

import pytest

from fleetbattle.engine.alliance import Alliance
from fleetbattle.engine.errors import ConfigurationError
from fleetbattle.engine.fleet import Fleet
from fleetbattle.engine.player import Player
from fleetbattle.engine.rules import ShipSpec
from fleetbattle.engine.ship import Ship


def _sink(ship: Ship) -> None:
    for index in range(ship.size):
        ship.receive_hit(index)


def test_from_specs_builds_ships_in_order() -> None:
    fleet = Fleet.from_specs("p1", [ShipSpec(name="Carrier", size=5), ShipSpec(name="Destroyer", size=2)])
    assert [ship.name for ship in fleet.ships] == ["Carrier", "Destroyer"]
    assert len(fleet) == 2
    assert not fleet.is_defeated()


def test_from_specs_rejects_empty_fleet() -> None:
    with pytest.raises(ConfigurationError):
        Fleet.from_specs("p1", [])


def test_empty_fleet_counts_as_defeated() -> None:
    assert Fleet("p1").is_defeated()


def test_fleet_defeated_only_when_every_ship_sunk() -> None:
    fleet = Fleet.from_specs("p1", [ShipSpec(name="A", size=1), ShipSpec(name="B", size=2)])
    _sink(fleet.ships[0])
    assert not fleet.is_defeated()
    assert fleet.afloat() == [fleet.ships[1]]

    _sink(fleet.ships[1])
    assert fleet.is_defeated()
    assert fleet.health() == 0.0


def test_add_ship_refused_for_defeated_fleet() -> None:
    fleet = Fleet.from_specs("p1", [ShipSpec(name="A", size=1)])
    _sink(fleet.ships[0])
    assert fleet.add_ship(Ship("Prize", 2)) is False
    assert len(fleet) == 1


def test_add_and_remove_ship() -> None:
    fleet = Fleet.from_specs("p1", [ShipSpec(name="A", size=1)])
    prize = Ship("Prize", 2)
    assert fleet.add_ship(prize)
    assert fleet.get_ship(prize.ship_id) is prize

    assert fleet.remove_ship(prize)
    assert fleet.get_ship(prize.ship_id) is None
    assert fleet.remove_ship(prize) is False


def test_is_placed_requires_every_ship() -> None:
    fleet = Fleet.from_specs("p1", [ShipSpec(name="A", size=1), ShipSpec(name="B", size=1)])
    fleet.ships[0].is_placed = True
    assert not fleet.is_placed()
    fleet.ships[1].is_placed = True
    assert fleet.is_placed()


def test_alliance_membership_and_defeat() -> None:
    first = Player("p1")
    second = Player("p2")
    first.fleet = Fleet.from_specs("p1", [ShipSpec(name="A", size=1)])
    second.fleet = Fleet.from_specs("p2", [ShipSpec(name="B", size=1)])

    alliance = Alliance("Blue")
    assert alliance.is_temporary
    assert alliance.add_player(first)
    assert alliance.add_player(first) is False
    assert alliance.display_name() == "p1"

    alliance.add_player(second)
    assert alliance.display_name() == "Blue"

    _sink(first.fleet.ships[0])
    assert alliance.active_players() == [second]
    assert not alliance.is_defeated()

    _sink(second.fleet.ships[0])
    assert alliance.is_defeated()
    assert alliance.stats()["active"] == 0


def test_alliance_owner_change() -> None:
    alliance = Alliance("Red", owner="admiral")
    assert not alliance.is_temporary
    alliance.change_owner(None)
    assert alliance.is_temporary
    assert alliance.remove_player(Player("ghost")) is False
