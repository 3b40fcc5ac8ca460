import asyncio
from unittest.mock import MagicMock

import pytest

from lorl.connection.manager import REASON_CLIENT_CLOSED, REASON_CONNECTION_LOST, ConnectionManager
from lorl.events import EventBus, EventName
from lorl.exceptions import ConnectTimeoutError, TransportError
from lorl.session.state import Session
from lorl.tests.mocks import EventRecorder, MockConnector, drain

URL = "ws://lorl.test/ws"


@pytest.fixture
def session():
    session = Session(game_id="g1")
    session.ensure_player_id()
    return session


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def connector():
    return MockConnector()


@pytest.fixture
async def manager(session, bus, connector):
    connection = ConnectionManager(session, bus, connect_timeout=0.05, connector=connector)
    yield connection
    await connection.close()


class TestOpen:
    async def test_open_publishes_connected(self, manager, session, bus, connector):
        recorder = EventRecorder(bus, EventName.CONNECTED)

        transport = await manager.open(URL)

        assert transport is connector.last
        assert manager.is_open
        assert manager.url == URL
        assert session.connected is True
        assert recorder.payloads(EventName.CONNECTED) == [{"playerId": session.player_id, "url": URL}]

    async def test_open_is_idempotent(self, manager, connector):
        first = await manager.open(URL)
        second = await manager.open(URL)

        assert first is second
        assert len(connector.urls) == 1

    async def test_concurrent_opens_share_one_socket(self, manager, connector):
        first, second = await asyncio.gather(manager.open(URL), manager.open(URL))

        assert first is second
        assert len(connector.transports) == 1

    async def test_reopens_after_drop(self, manager, connector):
        await manager.open(URL)
        connector.last.simulate_drop()
        await drain()

        transport = await manager.open(URL)

        assert len(connector.transports) == 2
        assert transport is connector.last

    async def test_timeout_raises_and_publishes_error(self, manager, session, bus, connector):
        recorder = EventRecorder(bus, EventName.ERROR)
        connector.hang = True

        with pytest.raises(ConnectTimeoutError, match="timed out"):
            await manager.open(URL)

        assert not manager.is_open
        assert session.connected is False
        assert len(recorder.payloads(EventName.ERROR)) == 1

    async def test_refused_connection_raises_and_publishes_error(self, manager, bus, connector):
        recorder = EventRecorder(bus, EventName.ERROR)
        connector.fail_with = TransportError(URL, "refused")

        with pytest.raises(TransportError):
            await manager.open(URL)

        assert recorder.payloads(EventName.ERROR) == [{"message": "refused", "url": URL}]


class TestFrames:
    async def test_frames_dispatched_in_order(self, manager, connector):
        received = []
        manager.set_frame_handler(received.append)
        await manager.open(URL)

        for n in range(5):
            connector.last.simulate_raw(f"frame-{n}")
        await drain()

        assert received == [f"frame-{n}" for n in range(5)]

    async def test_failing_frame_handler_keeps_reader_alive(self, manager, connector):
        received = []

        def handler(raw):
            if raw == "bad":
                raise ValueError(raw)
            received.append(raw)

        manager.set_frame_handler(handler)
        await manager.open(URL)
        connector.last.simulate_raw("bad")
        connector.last.simulate_raw("good")
        await drain()

        assert received == ["good"]
        assert manager.is_open

    async def test_send_when_open(self, manager, connector):
        await manager.open(URL)

        assert await manager.send_text('{"type": "lobby_leave"}') is True
        assert connector.last.sent_messages == [{"type": "lobby_leave"}]

    async def test_send_without_socket_is_dropped(self, manager):
        assert await manager.send_text('{"type": "lobby_leave"}') is False


class TestClose:
    async def test_remote_drop_resets_session_and_notifies(self, manager, session, bus, connector):
        recorder = EventRecorder(bus, EventName.DISCONNECTED)
        cleanup = MagicMock()
        manager.add_disconnect_handler(cleanup)
        await manager.open(URL)

        connector.last.simulate_drop()
        await drain()

        assert session.connected is False
        assert not manager.is_open
        cleanup.assert_called_once_with(REASON_CONNECTION_LOST)
        assert recorder.payloads(EventName.DISCONNECTED) == [{"reason": REASON_CONNECTION_LOST}]

    async def test_local_close_waits_for_cleanup(self, manager, bus, connector):
        recorder = EventRecorder(bus, EventName.DISCONNECTED)
        await manager.open(URL)

        await manager.close()

        assert connector.last.close_code == 1000
        assert recorder.payloads(EventName.DISCONNECTED) == [{"reason": REASON_CLIENT_CLOSED}]

    async def test_close_without_socket_is_noop(self, manager, bus):
        recorder = EventRecorder(bus, EventName.DISCONNECTED)

        await manager.close()

        assert recorder.events == []

    async def test_cleanup_runs_before_disconnected_event(self, manager, bus, connector):
        order = []
        manager.add_disconnect_handler(lambda _reason: order.append("cleanup"))
        bus.subscribe(EventName.DISCONNECTED, lambda _p: order.append("event"))
        await manager.open(URL)

        await manager.close()

        assert order == ["cleanup", "event"]

    async def test_failing_disconnect_handler_does_not_block_event(self, manager, bus, connector):
        recorder = EventRecorder(bus, EventName.DISCONNECTED)
        manager.add_disconnect_handler(MagicMock(side_effect=RuntimeError("boom")))
        await manager.open(URL)

        await manager.close()

        assert len(recorder.events) == 1

    async def test_close_during_open_discards_new_socket(self, manager, session, bus, connector):
        connector.gate = asyncio.Event()
        recorder = EventRecorder(bus, EventName.CONNECTED, EventName.ERROR)
        opening = asyncio.create_task(manager.open(URL))
        await drain()

        await manager.close()
        connector.gate.set()

        with pytest.raises(TransportError, match="closed while connecting"):
            await opening
        assert connector.last.is_open is False
        assert manager.is_open is False
        assert session.connected is False
        assert recorder.events == []

    async def test_open_after_close_succeeds(self, manager, connector):
        await manager.close()

        await manager.open(URL)

        assert manager.is_open
