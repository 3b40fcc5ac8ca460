"""Lobby data models shared by the state machine, router and directory."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lorl.session.state import RemotePlayer

# Lobby names starting with this marker are listed publicly.
PUBLIC_LOBBY_PREFIX = "PUBLIC_"


def is_public_name(lobby_name: str) -> bool:
    return lobby_name.startswith(PUBLIC_LOBBY_PREFIX)


def display_name(lobby_name: str) -> str:
    """Lobby name as shown to players, without the public marker."""
    return lobby_name.removeprefix(PUBLIC_LOBBY_PREFIX)


class LobbyState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    LOBBY_OWNER = "lobby_owner"
    LOBBY_MEMBER = "lobby_member"
    LEGACY_ROOM = "legacy_room"


@dataclass
class LobbyInfo:
    """The lobby the local session currently belongs to.

    Public visibility is derived from the lobby name and cannot be set
    independently.
    """

    lobby_id: str
    lobby_name: str
    owner_id: str
    max_players: int | None = None

    @property
    def is_public(self) -> bool:
        return is_public_name(self.lobby_name)

    def to_payload(self) -> dict[str, Any]:
        return {
            "lobbyId": self.lobby_id,
            "lobbyName": self.lobby_name,
            "isPublic": self.is_public,
            "ownerId": self.owner_id,
            "maxPlayers": self.max_players,
        }


@dataclass
class LobbySnapshot:
    """Lobby state received when joining, including the current members."""

    lobby: LobbyInfo
    players: list[RemotePlayer] = field(default_factory=list)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LobbySummary(_CamelModel):
    """One entry of a public lobby listing. Unknown server fields are kept."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    name: str
    player_count: int = 0
    max_players: int | None = None

    @property
    def is_public(self) -> bool:
        return is_public_name(self.name)

    @property
    def display_name(self) -> str:
        return display_name(self.name)


class CreateLobbyOptions(_CamelModel):
    lobby_name: str = Field(min_length=1, max_length=100)
    max_players: int = Field(ge=1)
    lobby_id: str | None = None
    game_id: str | None = None
    username: str | None = None


class JoinLobbyOptions(_CamelModel):
    lobby_id: str = Field(min_length=1)
    game_id: str | None = None
    username: str | None = None


class ListLobbiesOptions(_CamelModel):
    game_id: str | None = None
