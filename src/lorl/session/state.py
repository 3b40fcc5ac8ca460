"""Local player identity and the mirrored roster of remote players."""

import secrets
import string
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field

PLAYER_ID_PREFIX = "p_"
_PLAYER_ID_ALPHABET = string.ascii_lowercase + string.digits
_PLAYER_ID_LENGTH = 7


def generate_player_id() -> str:
    """Return a fresh ``p_<random>`` player id (7 lowercase base36 characters)."""
    suffix = "".join(secrets.choice(_PLAYER_ID_ALPHABET) for _ in range(_PLAYER_ID_LENGTH))
    return f"{PLAYER_ID_PREFIX}{suffix}"


@dataclass
class Session:
    """Identity and connection context of one client.

    The player id is assigned on the first connection attempt and reused
    across reconnects until reset() ends the session. game_id is fixed at
    construction; reset() returns username to its configured value.
    """

    game_id: str
    username: str = "Guest"
    player_id: str | None = None
    connected: bool = False
    _configured_username: str = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._configured_username = self.username

    def ensure_player_id(self) -> str:
        if self.player_id is None:
            self.player_id = generate_player_id()
        return self.player_id

    def reset(self) -> None:
        self.player_id = None
        self.connected = False
        self.username = self._configured_username


class RemotePlayer(BaseModel):
    """A peer as reported by the session server."""

    id: str
    username: str = "Player"
    data: dict[str, Any] = Field(default_factory=dict)


class PlayerRoster:
    """Mirrored view of remote players, keyed by player id.

    Returned players are copies; the roster is only mutated through its
    methods, which the message router calls during dispatch.
    """

    def __init__(self) -> None:
        self._players: dict[str, RemotePlayer] = {}

    def __len__(self) -> int:
        return len(self._players)

    def __contains__(self, player_id: object) -> bool:
        return player_id in self._players

    def get(self, player_id: str) -> RemotePlayer | None:
        player = self._players.get(player_id)
        return player.model_copy(deep=True) if player is not None else None

    def values(self) -> list[RemotePlayer]:
        return [p.model_copy(deep=True) for p in self._players.values()]

    def add(self, player: RemotePlayer) -> RemotePlayer:
        """Insert or replace a player."""
        self._players[player.id] = player.model_copy(deep=True)
        return player

    def add_many(self, players: list[RemotePlayer]) -> None:
        for player in players:
            self.add(player)

    def replace(self, players: list[RemotePlayer]) -> None:
        self._players.clear()
        self.add_many(players)

    def merge_state(self, player_id: str, data: dict[str, Any], username: str | None = None) -> RemotePlayer:
        """Shallow-merge data into a player's state, inserting unknown players.

        Later keys override earlier ones; keys absent from data are kept.
        """
        player = self._players.get(player_id)
        if player is None:
            player = RemotePlayer(id=player_id, username=username or "Player", data=dict(data))
            self._players[player_id] = player
        else:
            player.data = {**player.data, **data}
        return player.model_copy(deep=True)

    def remove(self, player_id: str) -> RemotePlayer | None:
        return self._players.pop(player_id, None)

    def clear(self) -> None:
        self._players.clear()
