"""Tests for Ship domain logic."""

import pytest

from fleetbattle.engine.rules import RevealPolicy, ShipSpec
from fleetbattle.engine.ship import (
    Coordinate,
    Orientation,
    RevealLevel,
    Ship,
    column_index,
    column_label,
)


def test_orientation_cells() -> None:
    start = Coordinate(3, 3)
    assert Orientation.HORIZONTAL.cells(start, 2) == [Coordinate(3, 3), Coordinate(3, 4)]
    assert Orientation.VERTICAL.cells(start, 3) == [
        Coordinate(3, 3),
        Coordinate(4, 3),
        Coordinate(5, 3),
    ]


def test_coordinate_label_uses_column_letter_and_one_based_row() -> None:
    assert Coordinate(3, 2).label == "C4"
    assert Coordinate(0, 0).label == "A1"


@pytest.mark.parametrize(
    ("col", "letters"), [(25, "Z"), (26, "AA"), (27, "AB"), (51, "AZ"), (701, "ZZ"), (702, "AAA")]
)
def test_wide_board_columns_use_multiple_letters(col: int, letters: str) -> None:
    assert column_label(col) == letters
    assert column_index(letters) == col
    assert Coordinate(4, col).label == f"{letters}5"


def test_column_helpers_reject_bad_input() -> None:
    with pytest.raises(ValueError):
        column_label(-1)
    with pytest.raises(ValueError):
        column_index("A1")


def test_ship_from_spec_defaults_class_to_name() -> None:
    ship = Ship.from_spec(ShipSpec(name="Cruiser", size=3))
    assert ship.ship_class == "Cruiser"
    assert ship.health == [1.0, 1.0, 1.0]
    assert ship.ship_id.startswith("ship-")
    assert not ship.is_placed


def test_ship_ids_are_unique() -> None:
    first = Ship("Destroyer", 2)
    second = Ship("Destroyer", 2)
    assert first.ship_id != second.ship_id


def test_ship_rejects_zero_size() -> None:
    with pytest.raises(ValueError):
        Ship("Raft", 0)


def test_receive_hit_sinks_after_every_cell() -> None:
    ship = Ship("Destroyer", 2)
    assert ship.receive_hit(0) == pytest.approx(0.5)
    assert not ship.is_sunk()
    assert ship.sunk_at is None

    assert ship.receive_hit(1) == 0.0
    assert ship.is_sunk()
    assert ship.sunk_at is not None


def test_receive_hit_clamps_and_ignores_dead_cells() -> None:
    ship = Ship("Cruiser", 3)
    ship.receive_hit(0, damage=5.0)
    assert ship.health[0] == 0.0

    ship.receive_hit(0, damage=1.0)
    assert ship.hits_taken == 1

    ship.receive_hit(1, damage=-2.0)
    assert ship.health[1] == 1.0


def test_receive_hit_rejects_out_of_range_index() -> None:
    ship = Ship("Destroyer", 2)
    with pytest.raises(IndexError):
        ship.receive_hit(2)


def test_partial_damage_keeps_cell_alive() -> None:
    ship = Ship("Submarine", 3)
    ship.receive_hit(1, damage=0.5)
    assert ship.cell_alive(1)
    assert ship.health_fraction() == pytest.approx(2.5 / 3)


def test_reveal_levels_follow_policy() -> None:
    policy = RevealPolicy(size_hint_hits=2, critical_health=0.34)
    ship = Ship("Battleship", 4)
    assert ship.reveal_level(policy) is RevealLevel.HIDDEN

    ship.receive_hit(0)
    assert ship.reveal_level(policy) is RevealLevel.HIT

    ship.receive_hit(1)
    assert ship.reveal_level(policy) is RevealLevel.SIZE_HINT

    ship.receive_hit(2)
    assert ship.reveal_level(policy) is RevealLevel.CRITICAL

    ship.receive_hit(3)
    assert ship.reveal_level(policy) is RevealLevel.FULL


def test_repair_and_reset_restore_ship() -> None:
    ship = Ship("Destroyer", 2)
    ship.is_placed = True
    ship.receive_hit(0)
    ship.receive_hit(1)

    ship.repair()
    assert ship.health == [1.0, 1.0]
    assert ship.sunk_at is None
    assert ship.is_placed

    ship.reset()
    assert not ship.is_placed
