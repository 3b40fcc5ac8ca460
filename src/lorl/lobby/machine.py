"""Lobby membership state machine.

States: IDLE -> CONNECTING -> {LOBBY_OWNER, LOBBY_MEMBER, LEGACY_ROOM} -> IDLE.

Caller-driven transitions (create, join, leave, legacy join) are coroutines
that open the socket through the connection manager and send an intent.
Server-driven transitions arrive through the ``on_*`` handlers, which the
message router calls synchronously during dispatch. Handshake responses are
matched to the oldest outstanding request of the same kind.
"""

from __future__ import annotations

import asyncio
import dataclasses
from typing import TYPE_CHECKING, Any

import structlog

from lorl.events import EventName
from lorl.exceptions import ConnectionFailedError, LobbyRequestError
from lorl.lobby.models import (
    CreateLobbyOptions,
    JoinLobbyOptions,
    ListLobbiesOptions,
    LobbyInfo,
    LobbySnapshot,
    LobbyState,
)
from lorl.messaging.codec import encode
from lorl.messaging.types import (
    JoinRoomMessage,
    LobbyCloseMessage,
    LobbyCreateMessage,
    LobbyJoinMessage,
    LobbyKickMessage,
    LobbyLeaveMessage,
    LobbyListRequest,
)
from lorl.session.pending import RequestKind
from lorl.session.state import RemotePlayer
from shared.validators import validate_server_url

if TYPE_CHECKING:
    from lorl.connection.manager import ConnectionManager
    from lorl.events import EventBus
    from lorl.lobby.models import LobbySummary
    from lorl.messaging.types import (
        ClientMessage,
        ErrorMessage,
        LobbyClosedMessage,
        LobbyCreatedMessage,
        LobbyKickedMessage,
        LobbyLeftMessage,
        LobbyListMessage,
        LobbyOwnerChangedMessage,
        LobbyPlayerJoinedMessage,
        LobbyPlayerLeftMessage,
        LobbyStateMessage,
    )
    from lorl.session.pending import PendingRequest, PendingRequests
    from lorl.session.state import PlayerRoster, Session

logger = structlog.get_logger()

DEFAULT_LIST_TIMEOUT = 5.0
DEFAULT_ROOM_ID = "default"

_HANDSHAKE_KINDS = (RequestKind.CREATE_LOBBY, RequestKind.JOIN_LOBBY)


class LobbyStateMachine:
    def __init__(  # noqa: PLR0913
        self,
        session: Session,
        roster: PlayerRoster,
        connection: ConnectionManager,
        bus: EventBus,
        pending: PendingRequests,
        *,
        server_url: str | None = None,
        list_timeout: float = DEFAULT_LIST_TIMEOUT,
        handshake_timeout: float | None = None,
    ) -> None:
        self._session = session
        self._roster = roster
        self._connection = connection
        self._bus = bus
        self._pending = pending
        self._server_url = validate_server_url(server_url) if server_url is not None else None
        self._list_timeout = list_timeout
        self._handshake_timeout = handshake_timeout
        self._state = LobbyState.IDLE
        self._lobby: LobbyInfo | None = None
        self._room_id: str | None = None
        connection.add_disconnect_handler(self._on_disconnect)

    @property
    def state(self) -> LobbyState:
        return self._state

    @property
    def lobby_info(self) -> LobbyInfo | None:
        return dataclasses.replace(self._lobby) if self._lobby is not None else None

    @property
    def is_host(self) -> bool:
        return (
            self._lobby is not None
            and self._session.player_id is not None
            and self._lobby.owner_id == self._session.player_id
        )

    @property
    def room_id(self) -> str | None:
        return self._room_id

    @property
    def server_url(self) -> str | None:
        return self._server_url

    @server_url.setter
    def server_url(self, value: str | None) -> None:
        self._server_url = validate_server_url(value) if value is not None else None

    # ------------------------------------------------------------------
    # Caller-driven transitions
    # ------------------------------------------------------------------

    async def create_lobby(self, options: CreateLobbyOptions) -> LobbyInfo:
        """Create a lobby owned by the local player and wait for confirmation.

        Raises ConnectionFailedError if the socket cannot be opened and
        LobbyRequestError if the server rejects the request or the socket
        drops before it answers.
        """
        player_id = self._session.ensure_player_id()
        self._apply_username(options.username)
        previous = await self._connect()
        request = self._pending.register(RequestKind.CREATE_LOBBY, timeout=self._handshake_timeout)
        message = LobbyCreateMessage(
            game_id=options.game_id or self._session.game_id,
            lobby_id=options.lobby_id,
            lobby_name=options.lobby_name,
            max_players=options.max_players,
            player_id=player_id,
            username=self._session.username,
        )
        if not await self._send(message):
            self._pending.discard(request)
        return await self._await_handshake(request, previous)

    async def join_lobby(self, options: JoinLobbyOptions) -> LobbySnapshot:
        """Join an existing lobby and wait for its snapshot. Raises like create_lobby."""
        player_id = self._session.ensure_player_id()
        self._apply_username(options.username)
        previous = await self._connect()
        request = self._pending.register(RequestKind.JOIN_LOBBY, timeout=self._handshake_timeout)
        message = LobbyJoinMessage(
            game_id=options.game_id or self._session.game_id,
            lobby_id=options.lobby_id,
            player_id=player_id,
            username=self._session.username,
        )
        if not await self._send(message):
            self._pending.discard(request)
        return await self._await_handshake(request, previous)

    async def leave_lobby(self) -> None:
        """Leave the current lobby without waiting for the server to acknowledge."""
        if self._lobby is not None:
            logger.info("leaving lobby", lobby_id=self._lobby.lobby_id, player_id=self._session.player_id)
        self._clear_membership()
        await self._send(LobbyLeaveMessage())

    async def list_lobbies(self, options: ListLobbiesOptions | None = None) -> list[LobbySummary]:
        """Return the server's public lobbies. Never raises; failures give an empty list."""
        if self._server_url is None:
            return []
        game_id = (options.game_id if options is not None else None) or self._session.game_id
        try:
            await self._connection.open(self._server_url)
        except ConnectionFailedError:
            return []
        request = self._pending.register(RequestKind.LIST_LOBBIES, timeout=self._list_timeout, fallback=list)
        if not await self._send(LobbyListRequest(game_id=game_id)):
            self._pending.discard(request)
        return await request.future

    async def kick_from_lobby(self, target_id: str) -> None:
        # Owner authority is enforced by the server.
        await self._send(LobbyKickMessage(target_id=target_id))

    async def close_lobby(self) -> None:
        await self._send(LobbyCloseMessage())

    async def join_legacy_room(
        self,
        room_id: str = DEFAULT_ROOM_ID,
        *,
        game_id: str | None = None,
        username: str | None = None,
    ) -> None:
        """Join a room directly, without a handshake. Raises ConnectionFailedError."""
        player_id = self._session.ensure_player_id()
        self._apply_username(username)
        await self._connect()
        self._lobby = None
        self._roster.clear()
        self._room_id = room_id
        self._state = LobbyState.LEGACY_ROOM
        logger.info("joining room", room_id=room_id, player_id=player_id)
        await self._send(
            JoinRoomMessage(
                game_id=game_id or self._session.game_id,
                room_id=room_id,
                player_id=player_id,
                username=self._session.username,
            ),
        )

    # ------------------------------------------------------------------
    # Server-driven transitions
    # ------------------------------------------------------------------

    def on_lobby_created(self, message: LobbyCreatedMessage) -> None:
        owner_id = self._session.ensure_player_id()
        info = LobbyInfo(
            lobby_id=message.lobby_id,
            lobby_name=message.lobby_name,
            owner_id=owner_id,
            max_players=message.max_players,
        )
        self._enter_lobby(info)
        self._roster.clear()
        logger.info("lobby created", lobby_id=info.lobby_id, player_id=owner_id, is_public=info.is_public)
        self._pending.resolve_oldest(RequestKind.CREATE_LOBBY, dataclasses.replace(info))
        self._bus.publish(EventName.LOBBY_CREATED, info.to_payload())

    def on_lobby_state(self, message: LobbyStateMessage) -> None:
        info = LobbyInfo(
            lobby_id=message.lobby_id,
            lobby_name=message.lobby_name,
            owner_id=message.owner_id,
            max_players=message.max_players,
        )
        self._enter_lobby(info)
        self._roster.replace([p for p in message.players if p.id != self._session.player_id])
        logger.info(
            "lobby joined",
            lobby_id=info.lobby_id,
            player_id=self._session.player_id,
            is_host=self.is_host,
            player_count=len(message.players),
        )
        snapshot = LobbySnapshot(
            lobby=dataclasses.replace(info),
            players=[p.model_copy(deep=True) for p in message.players],
        )
        self._pending.resolve_oldest(RequestKind.JOIN_LOBBY, snapshot)
        self._bus.publish(
            EventName.LOBBY_JOINED,
            {**info.to_payload(), "isHost": self.is_host, "players": [p.model_dump() for p in message.players]},
        )

    def on_lobby_player_joined(self, message: LobbyPlayerJoinedMessage) -> None:
        if self._lobby is None:
            logger.debug("ignoring lobby member outside a lobby", player_id=message.player_id)
            return
        if message.player_id != self._session.player_id:
            self._roster.add(RemotePlayer(id=message.player_id, username=message.username))
        self._bus.publish(
            EventName.LOBBY_PLAYER_JOINED,
            {"playerId": message.player_id, "username": message.username, "reason": message.reason},
        )

    def on_lobby_player_left(self, message: LobbyPlayerLeftMessage) -> None:
        leaving = self._roster.remove(message.player_id)
        username = message.username or (leaving.username if leaving is not None else None)
        self._bus.publish(
            EventName.LOBBY_PLAYER_LEFT,
            {"playerId": message.player_id, "username": username, "reason": message.reason},
        )

    def on_owner_changed(self, message: LobbyOwnerChangedMessage) -> None:
        if self._lobby is None:
            logger.debug("ignoring owner change outside a lobby", new_owner_id=message.new_owner_id)
            return
        self._lobby.owner_id = message.new_owner_id
        self._state = LobbyState.LOBBY_OWNER if self.is_host else LobbyState.LOBBY_MEMBER
        logger.info("lobby owner changed", lobby_id=self._lobby.lobby_id, new_owner_id=message.new_owner_id)
        self._bus.publish(
            EventName.LOBBY_OWNER_CHANGED,
            {"newOwnerId": message.new_owner_id, "isHost": self.is_host},
        )

    def on_lobby_left(self, message: LobbyLeftMessage) -> None:
        self._clear_membership()
        self._bus.publish(EventName.LOBBY_LEFT, {"reason": message.reason})

    def on_lobby_kicked(self, message: LobbyKickedMessage) -> None:
        logger.info("kicked from lobby", player_id=self._session.player_id, reason=message.reason)
        self._clear_membership()
        self._bus.publish(EventName.LOBBY_KICKED, {"reason": message.reason})

    def on_lobby_closed(self, message: LobbyClosedMessage) -> None:
        logger.info("lobby closed", player_id=self._session.player_id, reason=message.reason)
        self._clear_membership()
        self._bus.publish(EventName.LOBBY_CLOSED, {"reason": message.reason})

    def on_lobby_list(self, message: LobbyListMessage) -> None:
        self._pending.resolve_oldest(RequestKind.LIST_LOBBIES, [s.model_copy() for s in message.lobbies])
        self._bus.publish(
            EventName.LOBBY_LIST,
            {"lobbies": [s.model_dump(by_alias=True) for s in message.lobbies]},
        )

    def on_error(self, message: ErrorMessage) -> None:
        rejected = self._pending.reject_oldest(_HANDSHAKE_KINDS, LobbyRequestError(message.message))
        logger.warning("server error", message=message.message, handshake_rejected=rejected)
        self._bus.publish(EventName.ERROR, {"message": message.message})

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_disconnect(self, reason: str) -> None:
        self._clear_membership()
        self._pending.abandon_all(f"connection closed ({reason})")

    async def _connect(self) -> LobbyState:
        """Enter CONNECTING and open the socket. Return the state to restore on failure."""
        if self._server_url is None:
            msg = "no server url configured"
            raise LobbyRequestError(msg)
        previous = self._state
        self._state = LobbyState.CONNECTING
        try:
            await self._connection.open(self._server_url)
        except (ConnectionFailedError, asyncio.CancelledError):
            self._restore(previous)
            raise
        return previous

    async def _await_handshake(self, request: PendingRequest, previous: LobbyState) -> Any:  # noqa: ANN401
        # Cancellation by the caller (e.g. an asyncio.timeout around create) counts as a failure.
        try:
            return await request.future
        except (LobbyRequestError, asyncio.CancelledError):
            self._restore(previous)
            raise

    def _restore(self, previous: LobbyState) -> None:
        # A handshake that lands or a disconnect has already moved the state on.
        if self._state is LobbyState.CONNECTING:
            self._state = previous

    def _enter_lobby(self, info: LobbyInfo) -> None:
        self._lobby = info
        self._room_id = None
        self._state = LobbyState.LOBBY_OWNER if self.is_host else LobbyState.LOBBY_MEMBER

    def _clear_membership(self) -> None:
        self._lobby = None
        self._room_id = None
        self._roster.clear()
        self._state = LobbyState.IDLE

    def _apply_username(self, username: str | None) -> None:
        if username:
            self._session.username = username

    async def _send(self, message: ClientMessage) -> bool:
        return await self._connection.send_text(encode(message))
