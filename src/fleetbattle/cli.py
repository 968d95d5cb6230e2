"""Command-line driver: play against an AI or benchmark strategies."""

from __future__ import annotations

import argparse
import random
from typing import Sequence

from fleetbattle.ai.evaluation import compare_strategies
from fleetbattle.ai.player import AiPlayer
from fleetbattle.ai.targeting import SkillLevel, TargetingStrategy
from fleetbattle.engine.board import Board
from fleetbattle.engine.combat import AttackOutcome
from fleetbattle.engine.errors import GameStateError, InvalidAttackError
from fleetbattle.engine.events import EventHooks
from fleetbattle.engine.game import Game, GamePhase
from fleetbattle.engine.messages import Message
from fleetbattle.engine.player import HumanPlayer, Player
from fleetbattle.engine.rules import EraConfig, classic_era
from fleetbattle.engine.ship import Coordinate, Orientation, column_index, column_label


def _coordinate_from_input(text: str, rows: int = 10, cols: int = 10) -> Coordinate:
    """Parse ``C4`` style input (column letters, 1-based row) or ``'row col'``."""
    cleaned = text.strip().upper()
    if not cleaned:
        raise ValueError("Empty coordinate.")
    if cleaned[0].isalpha():
        letters = cleaned.rstrip("0123456789")
        try:
            col = column_index(letters)
            row = int(cleaned[len(letters):]) - 1
        except ValueError as exc:
            raise ValueError(f"Use column letters then a row number between 1 and {rows}.") from exc
    else:
        parts = cleaned.split()
        if len(parts) != 2:
            raise ValueError("Use formats like C4 or '3 7'.")
        row, col = map(int, parts)
    if row not in range(rows) or col not in range(cols):
        raise ValueError(f"Coordinates must be within the {rows}x{cols} board.")
    return Coordinate(row, col)


def _format_grid(board: Board, cell_symbol) -> str:
    header = "    " + " ".join(f"{column_label(col):>2}" for col in range(board.cols))
    rows = [header]
    for row in range(board.rows):
        symbols = [f"{cell_symbol(Coordinate(row, col)):>2}" for col in range(board.cols)]
        rows.append(f"{row + 1:>2} |" + " ".join(symbols))
    return "\n".join(rows)


def _own_waters(board: Board, player: Player, incoming: set[Coordinate]) -> str:
    def symbol(coord: Coordinate) -> str:
        located = player.ship_at(coord)
        if located is not None:
            ship, placement = located
            return "S" if ship.cell_alive(placement.cell_index) else "X"
        if board.terrain_at(coord) == "excluded":
            return "#"
        return "o" if coord in incoming else "."

    return _format_grid(board, symbol)


def _enemy_waters(board: Board, shots: dict[Coordinate, AttackOutcome]) -> str:
    def symbol(coord: Coordinate) -> str:
        outcome = shots.get(coord)
        if outcome is None:
            return "#" if board.terrain_at(coord) == "excluded" else "."
        if outcome is AttackOutcome.MISS:
            return "o"
        return "X" if outcome is AttackOutcome.DESTROYED else "x"

    return _format_grid(board, symbol)


def _prompt_for_coordinate(player: Player, board: Board) -> Coordinate:
    legal = set(player.legal_targets())
    while True:
        raw = input("Enter target coordinate (e.g., C4) or 'q' to quit: ").strip()
        if raw.lower() == "q":
            raise SystemExit("Goodbye!")
        try:
            coord = _coordinate_from_input(raw, board.rows, board.cols)
        except ValueError as exc:
            print(f"Invalid input: {exc}")
            continue
        if coord not in legal:
            print("That cell is already resolved. Choose another.")
            continue
        return coord


def _prompt_orientation(name: str, size: int) -> Orientation:
    while True:
        raw = input(f"Place your {name} (length {size}). Orientation [H/V]: ").strip().upper()
        if raw in {"H", "HOR", "HORIZONTAL"}:
            return Orientation.HORIZONTAL
        if raw in {"V", "VER", "VERTICAL"}:
            return Orientation.VERTICAL
        print("Please enter H for horizontal or V for vertical.")


def _manual_ship_placement(game: Game, player: Player) -> None:
    board = game.board
    for ship in player.fleet.ships:
        while True:
            print("\nCurrent layout:")
            print(_own_waters(board, player, set()))
            orientation = _prompt_orientation(ship.name, ship.size)
            start_raw = input("Enter starting coordinate (e.g., A1): ")
            try:
                start = _coordinate_from_input(start_raw, board.rows, board.cols)
            except ValueError as exc:
                print(f"Invalid coordinate: {exc}")
                continue
            cells = orientation.cells(start, ship.size)
            if game.register_ship_placement(player, ship, cells, orientation):
                break
            print("Ship cannot be placed there (out of bounds, bad terrain or overlap). Try again.")


def _prompt_manual_setup() -> bool:
    while True:
        raw = input("Would you like to place your ships manually? [Y/n]: ").strip().lower()
        if raw in {"", "y", "yes"}:
            return True
        if raw in {"n", "no"}:
            return False
        print("Please answer with 'y' or 'n'.")


def play_game(
    seed: int | None = None,
    strategy: str = TargetingStrategy.SPARSE_GRID.value,
    skill: str = SkillLevel.COMPETENT.value,
    era: EraConfig | None = None,
) -> Game:
    print("Welcome to fleetbattle!\n")
    era = era or classic_era()
    incoming: set[Coordinate] = set()

    def announce(shooter: Player, coord: Coordinate) -> None:
        incoming.add(coord)
        print(f"{shooter.name} fires at {coord.label}...")

    hooks = EventHooks(
        on_opponent_shot=announce,
        on_game_over=lambda event: print(f"\nGame over after {event.turns} turns."),
    )
    game = Game(era, rng_seed=seed, hooks=hooks)
    game.messages.subscribe(_echo)

    alliances = [spec.name for spec in era.alliances]
    human = HumanPlayer("you", "You")
    ai = AiPlayer("ai", "Admiral AI", strategy=strategy, skill=skill, rng=random.Random(seed))
    game.add_player(human, alliances[0])
    game.add_player(ai, alliances[1])
    game.set_board(Board(era.rows, era.cols, era.terrain or []))

    if _prompt_manual_setup():
        _manual_ship_placement(game, human)
    else:
        game.auto_place_ships(human)
        print("\nYour ships have been positioned automatically.")

    game.start_game()
    my_shots: dict[Coordinate, AttackOutcome] = {}

    while game.phase is GamePhase.PLAYING:
        print("\nYour waters:")
        print(_own_waters(game.board, human, incoming))
        print("\nEnemy waters:")
        print(_enemy_waters(game.board, my_shots))

        coord = _prompt_for_coordinate(human, game.board)
        try:
            result = game.process_player_action("attack", {"row": coord.row, "col": coord.col})
        except (GameStateError, InvalidAttackError) as exc:
            print(f"Move rejected: {exc}")
            continue
        my_shots[coord] = result.outcome

    if game.winner is human:
        print("\nCongratulations, you won!")
    else:
        print("\nThe AI won this time. Better luck next battle!")
    stats = human.stats()
    print(f"Shots {stats.shots}, hits {stats.hits}, accuracy {stats.accuracy:.1f}%, score {stats.score}")
    return game


def _echo(message: Message) -> None:
    print(message.text)


def simulate(strategies: Sequence[str], games: int, seed: int | None, skill: str) -> None:
    summaries = compare_strategies(strategies, games=games, seed=seed, skill=skill)
    for name, summary in summaries.items():
        print(
            f"{name:<12} mean_shots={summary.mean_shots:.1f} median={summary.median_shots:.1f} "
            f"min={summary.min_shots} max={summary.max_shots} accuracy={summary.mean_accuracy:.1f}%"
        )


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Play fleetbattle via the CLI.")
    subcommands = parser.add_subparsers(dest="command")

    play = subcommands.add_parser("play", help="Play against the AI.")
    play.add_argument("--seed", type=int, default=None, help="Optional RNG seed for reproducibility.")
    play.add_argument(
        "--strategy", choices=[s.value for s in TargetingStrategy], default="sparse_grid"
    )
    play.add_argument("--skill", choices=[s.value for s in SkillLevel], default="competent")
    play.add_argument("--era", type=str, default=None, help="Path to a JSON era configuration.")

    sim = subcommands.add_parser("simulate", help="Benchmark AI strategies headlessly.")
    sim.add_argument(
        "--strategy", choices=[s.value for s in TargetingStrategy] + ["all"], default="all"
    )
    sim.add_argument("--skill", choices=[s.value for s in SkillLevel], default="competent")
    sim.add_argument("--games", type=int, default=20)
    sim.add_argument("--seed", type=int, default=7)

    args = parser.parse_args(argv)
    if args.command == "simulate":
        names = [s.value for s in TargetingStrategy] if args.strategy == "all" else [args.strategy]
        simulate(names, games=args.games, seed=args.seed, skill=args.skill)
        return

    era = EraConfig.from_file(args.era) if getattr(args, "era", None) else None
    play_game(
        seed=getattr(args, "seed", None),
        strategy=getattr(args, "strategy", "sparse_grid"),
        skill=getattr(args, "skill", "competent"),
        era=era,
    )


if __name__ == "__main__":
    main()
