"""Typed wire messages exchanged with the session server.

Field names are snake_case in Python and camelCase on the wire. Outbound
intents are dumped by alias; inbound frames are validated against a closed
discriminated union, with tags outside the union mapped to IgnoredMessage.
"""

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SerializerFunctionWrapHandler, TypeAdapter, model_serializer
from pydantic.alias_generators import to_camel

from lorl.lobby.models import LobbySummary
from lorl.session.state import RemotePlayer


class ClientMessageType(StrEnum):
    LOBBY_CREATE = "lobby_create"
    LOBBY_JOIN = "lobby_join"
    LOBBY_LEAVE = "lobby_leave"
    LOBBY_LIST = "lobby_list"
    LOBBY_KICK = "lobby_kick"
    LOBBY_CLOSE = "lobby_close"
    JOIN = "join"
    STATE_UPDATE = "state_update"
    CUSTOM = "custom"


class ServerMessageType(StrEnum):
    LOBBY_CREATED = "lobby_created"
    LOBBY_STATE = "lobby_state"
    LOBBY_PLAYER_JOINED = "lobby_player_joined"
    LOBBY_PLAYER_LEFT = "lobby_player_left"
    LOBBY_LEFT = "lobby_left"
    LOBBY_KICKED = "lobby_kicked"
    LOBBY_CLOSED = "lobby_closed"
    LOBBY_OWNER_CHANGED = "lobby_owner_changed"
    LOBBY_LIST = "lobby_list"
    STATE_UPDATE = "state_update"
    CUSTOM = "custom"
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    ROOM_STATE = "room_state"
    ERROR = "error"


class WireMessage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Client -> server
# ---------------------------------------------------------------------------


class LobbyCreateMessage(WireMessage):
    type: Literal[ClientMessageType.LOBBY_CREATE] = ClientMessageType.LOBBY_CREATE
    game_id: str
    lobby_id: str | None = None
    lobby_name: str
    max_players: int
    player_id: str
    username: str

    @model_serializer(mode="wrap")
    def _omit_missing_lobby_id(self, handler: SerializerFunctionWrapHandler) -> dict[str, Any]:
        data = handler(self)
        if self.lobby_id is None:
            data.pop("lobbyId", None)
            data.pop("lobby_id", None)
        return data


class LobbyJoinMessage(WireMessage):
    type: Literal[ClientMessageType.LOBBY_JOIN] = ClientMessageType.LOBBY_JOIN
    game_id: str
    lobby_id: str
    player_id: str
    username: str


class LobbyLeaveMessage(WireMessage):
    type: Literal[ClientMessageType.LOBBY_LEAVE] = ClientMessageType.LOBBY_LEAVE


class LobbyListRequest(WireMessage):
    type: Literal[ClientMessageType.LOBBY_LIST] = ClientMessageType.LOBBY_LIST
    game_id: str


class LobbyKickMessage(WireMessage):
    type: Literal[ClientMessageType.LOBBY_KICK] = ClientMessageType.LOBBY_KICK
    target_id: str


class LobbyCloseMessage(WireMessage):
    type: Literal[ClientMessageType.LOBBY_CLOSE] = ClientMessageType.LOBBY_CLOSE


class JoinRoomMessage(WireMessage):
    type: Literal[ClientMessageType.JOIN] = ClientMessageType.JOIN
    game_id: str
    room_id: str
    player_id: str
    username: str


class StateUpdateMessage(WireMessage):
    type: Literal[ClientMessageType.STATE_UPDATE] = ClientMessageType.STATE_UPDATE
    player_id: str
    data: dict[str, Any]


class CustomMessage(WireMessage):
    type: Literal[ClientMessageType.CUSTOM] = ClientMessageType.CUSTOM
    player_id: str
    event: str
    data: Any = None


ClientMessage = (
    LobbyCreateMessage
    | LobbyJoinMessage
    | LobbyLeaveMessage
    | LobbyListRequest
    | LobbyKickMessage
    | LobbyCloseMessage
    | JoinRoomMessage
    | StateUpdateMessage
    | CustomMessage
)


# ---------------------------------------------------------------------------
# Server -> client
# ---------------------------------------------------------------------------


class LobbyCreatedMessage(WireMessage):
    type: Literal[ServerMessageType.LOBBY_CREATED] = ServerMessageType.LOBBY_CREATED
    lobby_id: str
    lobby_name: str
    # Informational only; visibility is derived from lobby_name.
    is_public: bool = False
    max_players: int | None = None
    player_id: str | None = None


class LobbyStateMessage(WireMessage):
    type: Literal[ServerMessageType.LOBBY_STATE] = ServerMessageType.LOBBY_STATE
    lobby_id: str
    lobby_name: str = ""
    is_public: bool = False
    owner_id: str
    max_players: int | None = None
    players: list[RemotePlayer] = Field(default_factory=list)


class LobbyPlayerJoinedMessage(WireMessage):
    type: Literal[ServerMessageType.LOBBY_PLAYER_JOINED] = ServerMessageType.LOBBY_PLAYER_JOINED
    player_id: str
    username: str = "Player"
    reason: str | None = None


class LobbyPlayerLeftMessage(WireMessage):
    type: Literal[ServerMessageType.LOBBY_PLAYER_LEFT] = ServerMessageType.LOBBY_PLAYER_LEFT
    player_id: str
    username: str | None = None
    reason: str | None = None


class LobbyLeftMessage(WireMessage):
    type: Literal[ServerMessageType.LOBBY_LEFT] = ServerMessageType.LOBBY_LEFT
    reason: str | None = None


class LobbyKickedMessage(WireMessage):
    type: Literal[ServerMessageType.LOBBY_KICKED] = ServerMessageType.LOBBY_KICKED
    reason: str | None = None


class LobbyClosedMessage(WireMessage):
    type: Literal[ServerMessageType.LOBBY_CLOSED] = ServerMessageType.LOBBY_CLOSED
    reason: str | None = None


class LobbyOwnerChangedMessage(WireMessage):
    type: Literal[ServerMessageType.LOBBY_OWNER_CHANGED] = ServerMessageType.LOBBY_OWNER_CHANGED
    new_owner_id: str


class LobbyListMessage(WireMessage):
    type: Literal[ServerMessageType.LOBBY_LIST] = ServerMessageType.LOBBY_LIST
    lobbies: list[LobbySummary] = Field(default_factory=list)


class RelayedStateUpdateMessage(WireMessage):
    type: Literal[ServerMessageType.STATE_UPDATE] = ServerMessageType.STATE_UPDATE
    player_id: str
    data: dict[str, Any] = Field(default_factory=dict)
    username: str | None = None


class RelayedCustomMessage(WireMessage):
    type: Literal[ServerMessageType.CUSTOM] = ServerMessageType.CUSTOM
    player_id: str
    event: str
    data: Any = None


class PlayerJoinedMessage(WireMessage):
    type: Literal[ServerMessageType.PLAYER_JOINED] = ServerMessageType.PLAYER_JOINED
    player_id: str
    username: str = "Player"


class PlayerLeftMessage(WireMessage):
    type: Literal[ServerMessageType.PLAYER_LEFT] = ServerMessageType.PLAYER_LEFT
    player_id: str


class RoomStateMessage(WireMessage):
    type: Literal[ServerMessageType.ROOM_STATE] = ServerMessageType.ROOM_STATE
    players: list[RemotePlayer] = Field(default_factory=list)


class ErrorMessage(WireMessage):
    type: Literal[ServerMessageType.ERROR] = ServerMessageType.ERROR
    message: str = "unknown error"


class IgnoredMessage(BaseModel):
    """A frame whose type tag this client does not handle."""

    type: str | None = None


ServerMessage = Annotated[
    LobbyCreatedMessage
    | LobbyStateMessage
    | LobbyPlayerJoinedMessage
    | LobbyPlayerLeftMessage
    | LobbyLeftMessage
    | LobbyKickedMessage
    | LobbyClosedMessage
    | LobbyOwnerChangedMessage
    | LobbyListMessage
    | RelayedStateUpdateMessage
    | RelayedCustomMessage
    | PlayerJoinedMessage
    | PlayerLeftMessage
    | RoomStateMessage
    | ErrorMessage,
    Field(discriminator="type"),
]

_server_message_adapter: TypeAdapter[ServerMessage] = TypeAdapter(ServerMessage)
_SERVER_MESSAGE_TYPES = frozenset(ServerMessageType)


def parse_server_message(data: dict[str, Any]) -> ServerMessage | IgnoredMessage:
    """Validate a decoded frame into a typed server message.

    Unknown or missing type tags yield IgnoredMessage. A known tag with an
    invalid payload raises pydantic.ValidationError.
    """
    tag = data.get("type")
    if not isinstance(tag, str) or tag not in _SERVER_MESSAGE_TYPES:
        return IgnoredMessage(type=tag if isinstance(tag, str) else None)
    return _server_message_adapter.validate_python(data)
