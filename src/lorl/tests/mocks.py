import asyncio
import json
from collections.abc import Callable
from typing import Any

from lorl.connection.transport import Transport, TransportClosedError

# Called with every decoded outbound message; returned messages are queued as server replies.
Responder = Callable[[dict[str, Any]], list[dict[str, Any]] | None]


class MockTransport(Transport):
    def __init__(self, responder: Responder | None = None) -> None:
        self._inbox: asyncio.Queue[str | bytes | None] = asyncio.Queue()
        self._outbox: list[dict[str, Any]] = []
        self._closed = False
        self.close_code: int | None = None
        self.responder = responder

    @property
    def is_open(self) -> bool:
        return not self._closed

    @property
    def sent_messages(self) -> list[dict[str, Any]]:
        return self._outbox.copy()

    @property
    def sent_types(self) -> list[str]:
        return [m["type"] for m in self._outbox]

    async def send_text(self, data: str) -> None:
        if self._closed:
            raise TransportClosedError("Connection is closed")
        message = json.loads(data)
        self._outbox.append(message)
        if self.responder is not None:
            for reply in self.responder(message) or ():
                self.simulate_receive(reply)

    async def receive(self) -> str | bytes:
        if self._closed and self._inbox.empty():
            raise TransportClosedError("Connection is closed")
        item = await self._inbox.get()
        if item is None:
            raise TransportClosedError("Connection is closed")
        return item

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self._closed:
            return
        self.close_code = code
        self._shut()

    def simulate_receive(self, data: dict[str, Any]) -> None:
        """Queue a server message for the reader task."""
        self._inbox.put_nowait(json.dumps(data))

    def simulate_raw(self, raw: str | bytes) -> None:
        self._inbox.put_nowait(raw)

    def simulate_drop(self) -> None:
        """Simulate the server going away without a close handshake."""
        self._shut()

    def _shut(self) -> None:
        self._closed = True
        self._inbox.put_nowait(None)


class MockConnector:
    """Connector test double handing out MockTransports."""

    def __init__(self, responder: Responder | None = None) -> None:
        self.transports: list[MockTransport] = []
        self.urls: list[str] = []
        self.fail_with: Exception | None = None
        self.hang = False
        # When set, connects wait for the event before handing out a transport.
        self.gate: asyncio.Event | None = None
        self.responder = responder

    @property
    def last(self) -> MockTransport:
        return self.transports[-1]

    async def __call__(self, url: str) -> MockTransport:
        self.urls.append(url)
        if self.fail_with is not None:
            raise self.fail_with
        if self.hang:
            await asyncio.Event().wait()
        if self.gate is not None:
            await self.gate.wait()
        transport = MockTransport(responder=self.responder)
        self.transports.append(transport)
        return transport


class EventRecorder:
    """Subscribes to events on a bus and records every payload in order."""

    def __init__(self, bus: Any, *names: str) -> None:  # noqa: ANN401
        self.events: list[tuple[str, Any]] = []
        for name in names:
            bus.subscribe(name, lambda payload, n=name: self.events.append((n, payload)))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def payloads(self, name: str) -> list[Any]:
        return [payload for n, payload in self.events if n == name]


async def drain(rounds: int = 10) -> None:
    """Let the reader task and pending callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


TEST_SERVER_URL = "ws://lorl.test/ws"


def lobby_server(message: dict[str, Any]) -> list[dict[str, Any]] | None:
    """Minimal scripted server: confirms creates and joins, lists one public lobby."""
    if message["type"] == "lobby_create":
        return [
            {
                "type": "lobby_created",
                "lobbyId": message.get("lobbyId", "L1"),
                "lobbyName": message["lobbyName"],
                "isPublic": message["lobbyName"].startswith("PUBLIC_"),
                "maxPlayers": message["maxPlayers"],
                "playerId": message["playerId"],
            },
        ]
    if message["type"] == "lobby_join":
        return [
            {
                "type": "lobby_state",
                "lobbyId": message["lobbyId"],
                "lobbyName": "Friends",
                "isPublic": False,
                "ownerId": "p_ann",
                "maxPlayers": 4,
                "players": [
                    {"id": "p_ann", "username": "Ann", "data": {}},
                    {"id": message["playerId"], "username": message["username"], "data": {}},
                ],
            },
        ]
    if message["type"] == "lobby_list":
        return [
            {
                "type": "lobby_list",
                "lobbies": [{"id": "L9", "name": "PUBLIC_Arena", "playerCount": 2, "maxPlayers": 4}],
            },
        ]
    return None
