"""Socket abstraction between the connection manager and the network."""

from __future__ import annotations

from abc import ABC, abstractmethod

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.protocol import State

from lorl.exceptions import TransportError


class TransportClosedError(ConnectionError):
    """The socket is closed; no more frames can be sent or received."""


class Transport(ABC):
    """
    Abstract interface for the single socket to the session server.

    This abstraction allows the connection manager and dispatcher to be
    tested without a real WebSocket.
    """

    @property
    @abstractmethod
    def is_open(self) -> bool: ...

    @abstractmethod
    async def send_text(self, data: str) -> None:
        """Send one text frame. Raises TransportClosedError once closed."""
        ...

    @abstractmethod
    async def receive(self) -> str | bytes:
        """Wait for the next frame. Raises TransportClosedError once closed."""
        ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...


class WebSocketTransport(Transport):
    def __init__(self, websocket: ClientConnection) -> None:
        self._websocket = websocket

    @classmethod
    async def connect(cls, url: str) -> WebSocketTransport:
        """Open a WebSocket to url. The caller owns the open timeout."""
        try:
            websocket = await connect(url, open_timeout=None)
        except (OSError, WebSocketException) as e:
            raise TransportError(url, f"failed to connect to {url}: {e}") from e
        return cls(websocket)

    @property
    def is_open(self) -> bool:
        return self._websocket.state is State.OPEN

    async def send_text(self, data: str) -> None:
        try:
            await self._websocket.send(data)
        except ConnectionClosed:
            raise TransportClosedError("WebSocket already closed") from None

    async def receive(self) -> str | bytes:
        try:
            return await self._websocket.recv()
        except ConnectionClosed:
            raise TransportClosedError("WebSocket closed") from None

    async def close(self, code: int = 1000, reason: str = "") -> None:
        await self._websocket.close(code=code, reason=reason)
