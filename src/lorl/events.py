"""Publish/subscribe bus that notifies embedding game code.

Handlers are called synchronously, in subscription order, from inside
message dispatch or connection lifecycle callbacks. A failing handler is
logged and skipped; it never stops the remaining handlers or reaches the
publisher.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from typing import Any

import structlog

logger = structlog.get_logger()

EventHandler = Callable[[Any], None]


class EventName(StrEnum):
    READY = "ready"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    LOBBY_CREATED = "lobbyCreated"
    LOBBY_JOINED = "lobbyJoined"
    LOBBY_LEFT = "lobbyLeft"
    LOBBY_KICKED = "lobbyKicked"
    LOBBY_CLOSED = "lobbyClosed"
    LOBBY_PLAYER_JOINED = "lobbyPlayerJoined"
    LOBBY_PLAYER_LEFT = "lobbyPlayerLeft"
    LOBBY_OWNER_CHANGED = "lobbyOwnerChanged"
    LOBBY_LIST = "lobbyList"
    PLAYER_JOINED = "playerJoined"
    PLAYER_LEFT = "playerLeft"
    PLAYER_UPDATED = "playerUpdated"
    ROOM_STATE = "roomState"
    MESSAGE = "message"


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}

    def subscribe(self, event: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def unsubscribe(self, event: str, handler: EventHandler) -> None:
        """Remove every registration of handler for event. Unknown handlers are ignored."""
        handlers = self._handlers.get(event)
        if not handlers:
            return
        self._handlers[event] = [h for h in handlers if h != handler]
        if not self._handlers[event]:
            del self._handlers[event]

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))

    def publish(self, event: str, payload: Any = None) -> None:  # noqa: ANN401
        # Snapshot so handlers may subscribe/unsubscribe while being called.
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(payload)
            except Exception:
                logger.exception("event handler failed", event_name=str(event), handler=_handler_name(handler))


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)
