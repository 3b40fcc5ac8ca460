"""Reachability checks for candidate session servers.

A ping opens a socket, measures the time until it is open and closes it
again. No protocol messages are exchanged.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from lorl.connection.transport import TransportClosedError, WebSocketTransport
from lorl.exceptions import ConnectionFailedError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from lorl.connection.manager import Connector

logger = structlog.get_logger()

DEFAULT_PING_TIMEOUT = 4.0


class ServerStatus(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    online: bool
    latency_ms: int | None = None


async def ping(
    url: str,
    *,
    timeout: float = DEFAULT_PING_TIMEOUT,
    connector: Connector | None = None,
) -> ServerStatus:
    """Report whether a server accepts a socket within timeout, and how fast."""
    connect = connector or WebSocketTransport.connect
    start = time.monotonic()
    try:
        transport = await asyncio.wait_for(connect(url), timeout=timeout)
    except (TimeoutError, ConnectionFailedError) as e:
        logger.debug("server offline", url=url, error=str(e) or type(e).__name__)
        return ServerStatus(online=False)

    latency_ms = round((time.monotonic() - start) * 1000)
    with contextlib.suppress(TransportClosedError, OSError):
        await transport.close()
    return ServerStatus(online=True, latency_ms=latency_ms)


async def ping_all(
    servers: Mapping[str, str],
    *,
    timeout: float = DEFAULT_PING_TIMEOUT,
    connector: Connector | None = None,
) -> dict[str, ServerStatus]:
    """Ping every server concurrently. Maps server id to url in, server id to status out."""
    ids = list(servers)
    statuses = await asyncio.gather(
        *(ping(servers[server_id], timeout=timeout, connector=connector) for server_id in ids),
    )
    return dict(zip(ids, statuses, strict=True))
