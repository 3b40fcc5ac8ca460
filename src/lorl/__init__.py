"""Embeddable multiplayer client runtime: identity, lobbies and state relay over one WebSocket."""

from lorl.client import LorlClient
from lorl.connection.ping import ServerStatus, ping, ping_all
from lorl.events import EventBus, EventName
from lorl.exceptions import (
    ConnectionFailedError,
    ConnectTimeoutError,
    LobbyRequestError,
    LorlError,
    TransportError,
)
from lorl.lobby.directory import fetch_public_lobbies
from lorl.lobby.models import LobbyInfo, LobbySnapshot, LobbyState, LobbySummary, display_name
from lorl.platform import CreateLobbyContext, JoinLobbyContext, PlatformInit, parse_init_message
from lorl.session.state import RemotePlayer
from lorl.settings import ClientSettings
from shared.logging import setup_logging

__all__ = [
    "ClientSettings",
    "ConnectTimeoutError",
    "ConnectionFailedError",
    "CreateLobbyContext",
    "EventBus",
    "EventName",
    "JoinLobbyContext",
    "LobbyInfo",
    "LobbyRequestError",
    "LobbySnapshot",
    "LobbyState",
    "LobbySummary",
    "LorlClient",
    "LorlError",
    "PlatformInit",
    "RemotePlayer",
    "ServerStatus",
    "TransportError",
    "display_name",
    "fetch_public_lobbies",
    "parse_init_message",
    "ping",
    "ping_all",
    "setup_logging",
]
