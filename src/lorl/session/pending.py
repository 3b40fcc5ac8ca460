"""Outstanding request/response handshakes awaiting a server message.

Every handshake (lobby create, lobby join, lobby list) is recorded here with
a local request id, its kind and an optional deadline. The wire protocol
carries no request id, so a response settles the oldest outstanding request
of its kind.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog

from lorl.exceptions import LobbyRequestError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = structlog.get_logger()


class RequestKind(StrEnum):
    CREATE_LOBBY = "lobby_create"
    JOIN_LOBBY = "lobby_join"
    LIST_LOBBIES = "lobby_list"


@dataclass
class PendingRequest:
    request_id: str
    kind: RequestKind
    future: asyncio.Future[Any]
    timeout: float | None = None
    # Called on timeout or abandonment; a result settles the request instead of an error.
    fallback: Callable[[], Any] | None = None
    _timer: asyncio.TimerHandle | None = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self.future.done()


class PendingRequests:
    """Registry of outstanding handshakes, in registration order."""

    def __init__(self) -> None:
        self._requests: dict[str, PendingRequest] = {}

    def register(
        self,
        kind: RequestKind,
        *,
        timeout: float | None = None,
        fallback: Callable[[], Any] | None = None,
    ) -> PendingRequest:
        """Record a new handshake and arm its deadline, if any."""
        loop = asyncio.get_running_loop()
        request = PendingRequest(
            request_id=uuid.uuid4().hex,
            kind=kind,
            future=loop.create_future(),
            timeout=timeout,
            fallback=fallback,
        )
        if timeout is not None:
            request._timer = loop.call_later(timeout, self._expire, request.request_id)
        request.future.add_done_callback(lambda _f, rid=request.request_id: self._forget(rid))
        self._requests[request.request_id] = request
        return request

    def outstanding(self, *kinds: RequestKind) -> int:
        return sum(1 for r in self._requests.values() if not r.done and (not kinds or r.kind in kinds))

    def resolve_oldest(self, kind: RequestKind, value: Any) -> bool:  # noqa: ANN401
        """Settle the oldest outstanding request of kind with value. Return False if none."""
        request = self._oldest(kind)
        if request is None:
            return False
        request.future.set_result(value)
        return True

    def reject_oldest(self, kinds: tuple[RequestKind, ...], error: Exception) -> bool:
        """Fail the oldest outstanding request whose kind is in kinds. Return False if none."""
        request = self._oldest(*kinds)
        if request is None:
            return False
        request.future.set_exception(error)
        return True

    def discard(self, request: PendingRequest) -> None:
        """Drop a request that will never be answered (e.g. its send was dropped)."""
        self._settle_abandoned(request, "request was not sent")

    def abandon_all(self, reason: str) -> None:
        """Settle every outstanding request; requests with a fallback get its value."""
        for request in list(self._requests.values()):
            self._settle_abandoned(request, reason)

    def _oldest(self, *kinds: RequestKind) -> PendingRequest | None:
        for request in self._requests.values():
            if request.kind in kinds and not request.done:
                return request
        return None

    def _expire(self, request_id: str) -> None:
        request = self._requests.get(request_id)
        if request is None or request.done:
            return
        logger.info("request timed out", request_kind=request.kind, timeout=request.timeout)
        self._settle_abandoned(request, f"{request.kind} timed out after {request.timeout:g}s")

    def _settle_abandoned(self, request: PendingRequest, reason: str) -> None:
        if request.done:
            self._forget(request.request_id)
            return
        if request.fallback is not None:
            request.future.set_result(request.fallback())
        else:
            request.future.set_exception(LobbyRequestError(reason))

    def _forget(self, request_id: str) -> None:
        request = self._requests.pop(request_id, None)
        if request is not None and request._timer is not None:
            request._timer.cancel()
            request._timer = None
