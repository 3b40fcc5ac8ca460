"""Startup entry point driven by the platform shell.

The shell posts a ``{"lorlInit": {...}}`` envelope to the game once per page
load. ``parse_init_message`` turns it into typed parameters and
``platform_init`` picks lobby-create, lobby-join or the legacy room from them,
falling back to the legacy room when a lobby handshake fails.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from lorl.events import EventName
from lorl.exceptions import LorlError
from lorl.lobby.machine import DEFAULT_ROOM_ID

if TYPE_CHECKING:
    from lorl.client import LorlClient

logger = structlog.get_logger()

INIT_ENVELOPE_KEY = "lorlInit"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateLobbyRequest(_CamelModel):
    lobby_name: str = Field(min_length=1, max_length=100)
    max_players: int = Field(ge=1)


class CreateLobbyContext(_CamelModel):
    create_lobby: CreateLobbyRequest


class JoinLobbyContext(_CamelModel):
    join_lobby_id: str = Field(min_length=1)


LobbyContext = CreateLobbyContext | JoinLobbyContext


class PlatformInit(_CamelModel):
    server_url: str | None = None
    room_id: str = DEFAULT_ROOM_ID
    username: str | None = None
    game_id: str | None = None
    create_lobby: CreateLobbyRequest | None = None
    join_lobby_id: str | None = None

    @property
    def lobby_context(self) -> LobbyContext | None:
        if self.create_lobby is not None:
            return CreateLobbyContext(create_lobby=self.create_lobby)
        if self.join_lobby_id:
            return JoinLobbyContext(join_lobby_id=self.join_lobby_id)
        return None


def parse_init_message(payload: Any) -> PlatformInit | None:  # noqa: ANN401
    """Return the init parameters carried by payload, or None if it is not an init envelope."""
    if not isinstance(payload, dict):
        return None
    body = payload.get(INIT_ENVELOPE_KEY)
    if not isinstance(body, dict):
        return None
    try:
        return PlatformInit.model_validate(body)
    except ValidationError as e:
        logger.warning("invalid init message", error_count=e.error_count())
        return None


async def platform_init(  # noqa: PLR0913
    client: LorlClient,
    server_url: str | None,
    room_id: str = DEFAULT_ROOM_ID,
    username: str | None = None,
    game_id: str | None = None,
    lobby_context: LobbyContext | None = None,
) -> None:
    """Start multiplayer for this page load and publish ``ready``.

    Without a server url the game runs single-player and no network action is
    taken. Otherwise ``ready`` is published once the chosen path has finished,
    whether it succeeded, fell back to the legacy room or failed outright;
    failures have already surfaced as ``error`` events by then.
    """
    if not server_url:
        logger.info("no server configured, running single-player")
        client.events.publish(EventName.READY, {"multiplayer": False})
        return

    try:
        client.server_url = server_url
    except ValueError as e:
        logger.warning("invalid server url, running single-player", server_url=server_url)
        client.events.publish(EventName.ERROR, {"message": str(e)})
        client.events.publish(EventName.READY, {"multiplayer": False})
        return
    if username:
        client.username = username

    joined_lobby = False
    try:
        if isinstance(lobby_context, CreateLobbyContext):
            await client.create_lobby(
                lobby_name=lobby_context.create_lobby.lobby_name,
                max_players=lobby_context.create_lobby.max_players,
                game_id=game_id,
            )
            joined_lobby = True
        elif isinstance(lobby_context, JoinLobbyContext):
            await client.join_lobby(lobby_id=lobby_context.join_lobby_id, game_id=game_id)
            joined_lobby = True
    except LorlError as e:
        logger.warning("lobby startup failed, falling back to room", room_id=room_id, error=str(e))

    if not joined_lobby:
        await client.connect(room_id=room_id, game_id=game_id)

    client.events.publish(
        EventName.READY,
        {"multiplayer": True, "serverUrl": server_url, "roomId": room_id, "username": client.username},
    )


async def apply_init_message(client: LorlClient, payload: Any) -> bool:  # noqa: ANN401
    """Run platform_init for an init envelope. Return False if payload is not one."""
    init = parse_init_message(payload)
    if init is None:
        return False
    await platform_init(
        client,
        init.server_url,
        init.room_id,
        init.username,
        init.game_id,
        init.lobby_context,
    )
    return True
