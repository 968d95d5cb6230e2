"""Alliances: groups of players immune to each other's fire."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .player import Player

logger = logging.getLogger(__name__)


@dataclass
class Alliance:
    """A named team. Alliances without an owner only live for one match."""

    name: str
    owner: str | None = None
    players: list[Player] = field(default_factory=list)

    @property
    def is_temporary(self) -> bool:
        return self.owner is None

    def add_player(self, player: Player) -> bool:
        if self.has_player(player.player_id):
            return False
        self.players.append(player)
        return True

    def remove_player(self, player: Player) -> bool:
        if not self.has_player(player.player_id):
            return False
        self.players = [p for p in self.players if p.player_id != player.player_id]
        return True

    def has_player(self, player_id: str) -> bool:
        return any(p.player_id == player_id for p in self.players)

    def change_owner(self, owner: str | None) -> None:
        logger.info(
            "alliance_owner_changed",
            extra={"alliance": self.name, "previous": self.owner, "owner": owner},
        )
        self.owner = owner

    def display_name(self) -> str:
        """A one-member alliance is shown under its player's name."""
        if len(self.players) == 1:
            return self.players[0].name
        return self.name

    def active_players(self) -> list[Player]:
        return [p for p in self.players if not p.is_defeated()]

    def is_defeated(self) -> bool:
        return not self.active_players()

    def stats(self) -> dict[str, object]:
        return {
            "name": self.name,
            "owner": self.owner,
            "players": len(self.players),
            "active": len(self.active_players()),
            "defeated": self.is_defeated(),
        }
