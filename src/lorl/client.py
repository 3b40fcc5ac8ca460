"""Public client facade.

One ``LorlClient`` is one session: a player identity, at most one socket and
at most one lobby or legacy room. Embedding code owns the instance and tears
it down with ``aclose()`` (or ``async with``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Self

import structlog

from lorl.connection.manager import ConnectionManager
from lorl.connection.ping import ping
from lorl.events import EventBus, EventName
from lorl.exceptions import ConnectionFailedError, LorlError
from lorl.lobby.directory import fetch_public_lobbies
from lorl.lobby.machine import DEFAULT_ROOM_ID, LobbyStateMachine
from lorl.lobby.models import CreateLobbyOptions, JoinLobbyOptions, ListLobbiesOptions
from lorl.messaging.codec import encode
from lorl.messaging.router import MessageRouter
from lorl.messaging.types import CustomMessage, StateUpdateMessage
from lorl.platform import apply_init_message, platform_init
from lorl.session.pending import PendingRequests
from lorl.session.state import PlayerRoster, Session
from shared.logging import bind_client_context

if TYPE_CHECKING:
    from types import TracebackType

    from lorl.connection.manager import Connector
    from lorl.connection.ping import ServerStatus
    from lorl.events import EventHandler
    from lorl.lobby.models import LobbyInfo, LobbySnapshot, LobbyState, LobbySummary
    from lorl.platform import LobbyContext
    from lorl.session.state import RemotePlayer
    from lorl.settings import ClientSettings

logger = structlog.get_logger()


class LorlClient:
    def __init__(self, settings: ClientSettings, *, connector: Connector | None = None) -> None:
        self._settings = settings
        self._connector = connector
        self._session = Session(game_id=settings.game_id, username=settings.username)
        self._bus = EventBus()
        self._roster = PlayerRoster()
        self._pending = PendingRequests()
        self._connection = ConnectionManager(
            self._session,
            self._bus,
            connect_timeout=settings.connect_timeout_seconds,
            connector=connector,
        )
        self._machine = LobbyStateMachine(
            self._session,
            self._roster,
            self._connection,
            self._bus,
            self._pending,
            server_url=settings.server_url,
            list_timeout=settings.list_timeout_seconds,
            handshake_timeout=settings.handshake_timeout_seconds,
        )
        self._router = MessageRouter(self._roster, self._machine, self._bus)
        self._connection.set_frame_handler(self._router.handle_frame)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    @property
    def events(self) -> EventBus:
        return self._bus

    def on(self, event: str, handler: EventHandler) -> None:
        self._bus.subscribe(event, handler)

    def off(self, event: str, handler: EventHandler) -> None:
        self._bus.unsubscribe(event, handler)

    # ------------------------------------------------------------------
    # Session accessors
    # ------------------------------------------------------------------

    @property
    def player_id(self) -> str | None:
        return self._session.player_id

    @property
    def username(self) -> str:
        return self._session.username

    @username.setter
    def username(self, value: str) -> None:
        self._session.username = value

    @property
    def game_id(self) -> str:
        return self._session.game_id

    @property
    def is_connected(self) -> bool:
        return self._session.connected and self._connection.is_open

    @property
    def server_url(self) -> str | None:
        return self._machine.server_url

    @server_url.setter
    def server_url(self, value: str | None) -> None:
        self._machine.server_url = value

    @property
    def state(self) -> LobbyState:
        return self._machine.state

    @property
    def lobby_info(self) -> LobbyInfo | None:
        return self._machine.lobby_info

    @property
    def is_host(self) -> bool:
        return self._machine.is_host

    @property
    def room_id(self) -> str | None:
        return self._machine.room_id

    def get_players(self) -> list[RemotePlayer]:
        return self._roster.values()

    # ------------------------------------------------------------------
    # Legacy room API
    # ------------------------------------------------------------------

    async def connect(
        self,
        server_url: str | None = None,
        room_id: str | None = None,
        username: str | None = None,
        game_id: str | None = None,
    ) -> str | None:
        """Join a legacy room. Return the player id, or None if the socket could not be opened.

        Connection failures are reported through the ``error`` event, never raised.
        """
        if server_url is not None:
            self.server_url = server_url
        try:
            await self._machine.join_legacy_room(room_id or DEFAULT_ROOM_ID, game_id=game_id, username=username)
        except ConnectionFailedError:
            return None
        except LorlError as e:
            logger.warning("connect failed", error=str(e))
            self._bus.publish(EventName.ERROR, {"message": str(e)})
            return None
        bind_client_context(player_id=self._session.player_id, game_id=game_id or self._session.game_id)
        return self._session.player_id

    async def disconnect(self) -> None:
        await self._connection.close()

    async def update_state(self, data: dict[str, Any]) -> bool:
        """Broadcast a partial state update for the local player. Dropped when not connected."""
        player_id = self._session.player_id
        if player_id is None or not self.is_connected:
            return False
        return await self._connection.send_text(encode(StateUpdateMessage(player_id=player_id, data=data)))

    async def send_message(self, event: str, data: Any = None) -> bool:  # noqa: ANN401
        """Relay an application-defined message to the other players. Dropped when not connected."""
        player_id = self._session.player_id
        if player_id is None or not self.is_connected:
            return False
        return await self._connection.send_text(
            encode(CustomMessage(player_id=player_id, event=event, data=data)),
        )

    # ------------------------------------------------------------------
    # Lobby API
    # ------------------------------------------------------------------

    async def create_lobby(  # noqa: PLR0913
        self,
        *,
        lobby_name: str,
        max_players: int,
        lobby_id: str | None = None,
        game_id: str | None = None,
        username: str | None = None,
    ) -> LobbyInfo:
        options = CreateLobbyOptions(
            lobby_name=lobby_name,
            max_players=max_players,
            lobby_id=lobby_id,
            game_id=game_id,
            username=username,
        )
        info = await self._machine.create_lobby(options)
        bind_client_context(player_id=self._session.player_id, lobby_id=info.lobby_id)
        return info

    async def join_lobby(
        self,
        lobby_id: str,
        *,
        game_id: str | None = None,
        username: str | None = None,
    ) -> LobbySnapshot:
        snapshot = await self._machine.join_lobby(
            JoinLobbyOptions(lobby_id=lobby_id, game_id=game_id, username=username),
        )
        bind_client_context(player_id=self._session.player_id, lobby_id=snapshot.lobby.lobby_id)
        return snapshot

    async def leave_lobby(self) -> None:
        await self._machine.leave_lobby()

    async def list_lobbies(self, *, game_id: str | None = None) -> list[LobbySummary]:
        return await self._machine.list_lobbies(ListLobbiesOptions(game_id=game_id))

    async def kick_from_lobby(self, target_id: str) -> None:
        await self._machine.kick_from_lobby(target_id)

    async def close_lobby(self) -> None:
        await self._machine.close_lobby()

    async def fetch_public_lobbies(self, *, game_id: str | None = None) -> list[LobbySummary]:
        """List public lobbies over HTTP without opening a socket."""
        if self.server_url is None:
            return []
        return await fetch_public_lobbies(
            self.server_url,
            game_id or self._session.game_id,
            timeout=self._settings.list_timeout_seconds,
        )

    async def ping(self, server_url: str | None = None) -> ServerStatus:
        url = server_url or self.server_url
        if url is None:
            msg = "no server url to ping"
            raise ValueError(msg)
        return await ping(url, timeout=self._settings.ping_timeout_seconds, connector=self._connector)

    # ------------------------------------------------------------------
    # Startup and teardown
    # ------------------------------------------------------------------

    async def platform_init(  # noqa: PLR0913
        self,
        server_url: str | None,
        room_id: str = DEFAULT_ROOM_ID,
        username: str | None = None,
        game_id: str | None = None,
        lobby_context: LobbyContext | None = None,
    ) -> None:
        await platform_init(self, server_url, room_id, username, game_id, lobby_context)

    async def handle_init_message(self, payload: Any) -> bool:  # noqa: ANN401
        """Run platform_init for a ``lorlInit`` envelope. Return False for other payloads."""
        return await apply_init_message(self, payload)

    async def aclose(self) -> None:
        """Close the socket and forget the player identity."""
        await self._connection.close()
        self._session.reset()
        structlog.contextvars.unbind_contextvars("player_id", "lobby_id", "game_id")
