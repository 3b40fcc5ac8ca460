from __future__ import annotations

from typing import TYPE_CHECKING, assert_never

import structlog
from pydantic import ValidationError

from lorl.events import EventName
from lorl.lobby.models import LobbyState
from lorl.messaging.codec import DecodeError, decode
from lorl.messaging.types import (
    ErrorMessage,
    IgnoredMessage,
    LobbyClosedMessage,
    LobbyCreatedMessage,
    LobbyKickedMessage,
    LobbyLeftMessage,
    LobbyListMessage,
    LobbyOwnerChangedMessage,
    LobbyPlayerJoinedMessage,
    LobbyPlayerLeftMessage,
    LobbyStateMessage,
    PlayerJoinedMessage,
    PlayerLeftMessage,
    RelayedCustomMessage,
    RelayedStateUpdateMessage,
    RoomStateMessage,
    ServerMessage,
    parse_server_message,
)
from lorl.session.state import RemotePlayer

if TYPE_CHECKING:
    from lorl.events import EventBus
    from lorl.lobby.machine import LobbyStateMachine
    from lorl.session.state import PlayerRoster

logger = structlog.get_logger()


class MessageRouter:
    """
    Routes inbound server frames to the roster, the lobby machine and the event bus.

    Called by the connection manager's reader task once per frame; each frame
    is fully handled before the next one arrives. Contains no I/O and can be
    tested by feeding raw frames directly.
    """

    def __init__(self, roster: PlayerRoster, machine: LobbyStateMachine, bus: EventBus) -> None:
        self._roster = roster
        self._machine = machine
        self._bus = bus

    def handle_frame(self, raw: str | bytes) -> None:
        try:
            message = parse_server_message(decode(raw))
        except DecodeError as e:
            logger.debug("dropping malformed frame", error=str(e))
            return
        except ValidationError as e:
            logger.debug("dropping invalid message", error_count=e.error_count())
            return
        self.route(message)

    def route(self, message: ServerMessage | IgnoredMessage) -> None:  # noqa: C901, PLR0912
        if isinstance(message, LobbyCreatedMessage):
            self._machine.on_lobby_created(message)
        elif isinstance(message, LobbyStateMessage):
            self._machine.on_lobby_state(message)
        elif isinstance(message, LobbyPlayerJoinedMessage):
            self._machine.on_lobby_player_joined(message)
        elif isinstance(message, LobbyPlayerLeftMessage):
            self._machine.on_lobby_player_left(message)
        elif isinstance(message, LobbyOwnerChangedMessage):
            self._machine.on_owner_changed(message)
        elif isinstance(message, LobbyLeftMessage):
            self._machine.on_lobby_left(message)
        elif isinstance(message, LobbyKickedMessage):
            self._machine.on_lobby_kicked(message)
        elif isinstance(message, LobbyClosedMessage):
            self._machine.on_lobby_closed(message)
        elif isinstance(message, LobbyListMessage):
            self._machine.on_lobby_list(message)
        elif isinstance(message, ErrorMessage):
            self._machine.on_error(message)
        elif isinstance(message, PlayerJoinedMessage):
            self._handle_player_joined(message)
        elif isinstance(message, PlayerLeftMessage):
            self._handle_player_left(message)
        elif isinstance(message, RoomStateMessage):
            self._handle_room_state(message)
        elif isinstance(message, RelayedStateUpdateMessage):
            self._handle_state_update(message)
        elif isinstance(message, RelayedCustomMessage):
            self._bus.publish(
                EventName.MESSAGE,
                {"from": message.player_id, "event": message.event, "data": message.data},
            )
        elif isinstance(message, IgnoredMessage):
            logger.debug("ignoring message", message_type=message.type)
        else:
            assert_never(message)

    def _handle_player_joined(self, message: PlayerJoinedMessage) -> None:
        player = self._roster.add(RemotePlayer(id=message.player_id, username=message.username))
        self._bus.publish(EventName.PLAYER_JOINED, player.model_dump())

    def _handle_player_left(self, message: PlayerLeftMessage) -> None:
        leaving = self._roster.remove(message.player_id)
        self._bus.publish(
            EventName.PLAYER_LEFT,
            {"id": message.player_id, "username": leaving.username if leaving is not None else None},
        )

    def _handle_room_state(self, message: RoomStateMessage) -> None:
        self._roster.add_many(message.players)
        self._bus.publish(EventName.ROOM_STATE, {"players": [p.model_dump() for p in self._roster.values()]})

    def _handle_state_update(self, message: RelayedStateUpdateMessage) -> None:
        if self._machine.state is LobbyState.IDLE:
            # Late relay from a room or lobby already left.
            logger.debug("ignoring state update outside a room", from_player_id=message.player_id)
            return
        self._roster.merge_state(message.player_id, message.data, username=message.username)
        self._bus.publish(EventName.PLAYER_UPDATED, {"id": message.player_id, "data": message.data})
