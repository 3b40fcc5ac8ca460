"""Lifecycle of the single socket to the session server.

The manager is the only component that opens or closes the socket. It runs
one reader task per socket that hands each inbound frame to the frame
handler and waits for it to finish before receiving the next one, so frames
are dispatched strictly in arrival order.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import structlog

from lorl.connection.transport import Transport, TransportClosedError, WebSocketTransport
from lorl.events import EventName
from lorl.exceptions import ConnectionFailedError, ConnectTimeoutError, TransportError

if TYPE_CHECKING:
    from lorl.events import EventBus
    from lorl.session.state import Session

logger = structlog.get_logger()

# Callback types
Connector = Callable[[str], Awaitable[Transport]]
FrameHandler = Callable[[str | bytes], None]
DisconnectHandler = Callable[[str], None]

DEFAULT_CONNECT_TIMEOUT = 8.0

REASON_CONNECTION_LOST = "connection_lost"
REASON_CLIENT_CLOSED = "client_closed"


class ConnectionManager:
    def __init__(
        self,
        session: Session,
        bus: EventBus,
        *,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        connector: Connector | None = None,
    ) -> None:
        self._session = session
        self._bus = bus
        self._connect_timeout = connect_timeout
        self._connector: Connector = connector or WebSocketTransport.connect
        self._transport: Transport | None = None
        self._url: str | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._open_lock = asyncio.Lock()
        self._closing = False
        # Bumped by close(); an open that started under an older generation is abandoned.
        self._generation = 0
        self._frame_handler: FrameHandler | None = None
        self._disconnect_handlers: list[DisconnectHandler] = []

    @property
    def is_open(self) -> bool:
        return self._transport is not None and self._transport.is_open

    @property
    def url(self) -> str | None:
        return self._url

    def set_frame_handler(self, handler: FrameHandler) -> None:
        self._frame_handler = handler

    def add_disconnect_handler(self, handler: DisconnectHandler) -> None:
        """Register cleanup to run when an open socket goes away, before `disconnected` is published."""
        self._disconnect_handlers.append(handler)

    async def open(self, url: str) -> Transport:
        """Return the open socket, opening a new one if needed.

        Raises ConnectTimeoutError if the transport does not open within the
        connect timeout, and TransportError if it refuses. Both are also
        published as `error` events. Raises TransportError without publishing
        if close() runs while the socket is still opening.
        """
        generation = self._generation
        async with self._open_lock:
            if self._transport is not None and self._transport.is_open:
                return self._transport

            await self._discard_stale()

            try:
                transport = await asyncio.wait_for(self._connector(url), timeout=self._connect_timeout)
            except TimeoutError:
                error = ConnectTimeoutError(url, self._connect_timeout)
                self._report_failure(error)
                raise error from None
            except ConnectionFailedError as e:
                self._report_failure(e)
                raise

            if generation != self._generation:
                logger.debug("socket opened after close, discarding", url=url)
                with contextlib.suppress(TransportClosedError, OSError):
                    await transport.close()
                msg = "client closed while connecting"
                raise TransportError(url, msg)

            self._transport = transport
            self._url = url
            self._session.connected = True
            self._reader_task = asyncio.create_task(self._read_loop(transport))
            logger.info("connection opened", url=url, player_id=self._session.player_id)
            self._bus.publish(EventName.CONNECTED, {"playerId": self._session.player_id, "url": url})
            return transport

    async def send_text(self, payload: str) -> bool:
        """Write one frame if the socket is open. Frames for a closed socket are dropped."""
        transport = self._transport
        if transport is None or not transport.is_open:
            logger.debug("send dropped, socket not open")
            return False
        try:
            await transport.send_text(payload)
        except (TransportClosedError, OSError) as e:
            logger.debug("send dropped", error=str(e))
            return False
        return True

    async def close(self) -> None:
        """Close the socket and wait until disconnect cleanup has run."""
        self._generation += 1
        transport = self._transport
        if transport is None:
            return
        self._closing = True
        try:
            with contextlib.suppress(TransportClosedError, OSError):
                await transport.close()
            await self._wait_reader()
        finally:
            self._closing = False

    async def _discard_stale(self) -> None:
        transport = self._transport
        if transport is None:
            return
        logger.debug("discarding stale socket", url=self._url)
        with contextlib.suppress(TransportClosedError, OSError):
            await transport.close()
        await self._wait_reader()

    async def _wait_reader(self) -> None:
        task = self._reader_task
        if task is not None and task is not asyncio.current_task():
            await task

    async def _read_loop(self, transport: Transport) -> None:
        try:
            while True:
                raw = await transport.receive()
                if self._frame_handler is None:
                    continue
                try:
                    self._frame_handler(raw)
                except Exception:
                    logger.exception("frame handler failed")
        except TransportClosedError:
            pass
        except OSError as e:
            logger.warning("transport error", error=str(e))
            self._bus.publish(EventName.ERROR, {"message": str(e)})
        finally:
            self._handle_closed(transport)

    def _handle_closed(self, transport: Transport) -> None:
        if self._transport is not transport:
            return
        reason = REASON_CLIENT_CLOSED if self._closing else REASON_CONNECTION_LOST
        self._transport = None
        self._reader_task = None
        self._session.connected = False
        logger.info("connection closed", url=self._url, reason=reason)
        for handler in list(self._disconnect_handlers):
            try:
                handler(reason)
            except Exception:
                logger.exception("disconnect handler failed")
        self._bus.publish(EventName.DISCONNECTED, {"reason": reason})

    def _report_failure(self, error: ConnectionFailedError) -> None:
        logger.warning("connection failed", url=error.url, error=str(error))
        self._bus.publish(EventName.ERROR, {"message": str(error), "url": error.url})
