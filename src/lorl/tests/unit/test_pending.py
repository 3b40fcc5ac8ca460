import asyncio

import pytest

from lorl.exceptions import LobbyRequestError
from lorl.session.pending import PendingRequests, RequestKind
from lorl.tests.mocks import drain

_HANDSHAKES = (RequestKind.CREATE_LOBBY, RequestKind.JOIN_LOBBY)


class TestPendingRequests:
    async def test_resolves_oldest_of_kind_first(self):
        pending = PendingRequests()
        first = pending.register(RequestKind.JOIN_LOBBY)
        second = pending.register(RequestKind.JOIN_LOBBY)

        assert pending.resolve_oldest(RequestKind.JOIN_LOBBY, "a")

        assert await first.future == "a"
        assert not second.done
        assert pending.outstanding(RequestKind.JOIN_LOBBY) == 1

    async def test_resolve_ignores_other_kinds(self):
        pending = PendingRequests()
        create = pending.register(RequestKind.CREATE_LOBBY)

        assert pending.resolve_oldest(RequestKind.JOIN_LOBBY, "x") is False
        assert not create.done

    async def test_reject_oldest_handshake(self):
        pending = PendingRequests()
        listing = pending.register(RequestKind.LIST_LOBBIES)
        join = pending.register(RequestKind.JOIN_LOBBY)
        create = pending.register(RequestKind.CREATE_LOBBY)

        assert pending.reject_oldest(_HANDSHAKES, LobbyRequestError("lobby full"))

        with pytest.raises(LobbyRequestError, match="lobby full"):
            await join.future
        assert not create.done
        assert not listing.done

    async def test_reject_without_outstanding_returns_false(self):
        assert PendingRequests().reject_oldest(_HANDSHAKES, LobbyRequestError("x")) is False

    async def test_timeout_uses_fallback(self):
        pending = PendingRequests()
        request = pending.register(RequestKind.LIST_LOBBIES, timeout=0.01, fallback=list)

        assert await asyncio.wait_for(request.future, 1) == []
        assert pending.outstanding() == 0

    async def test_timeout_without_fallback_raises(self):
        pending = PendingRequests()
        request = pending.register(RequestKind.CREATE_LOBBY, timeout=0.01)

        with pytest.raises(LobbyRequestError, match="timed out"):
            await asyncio.wait_for(request.future, 1)

    async def test_no_timeout_waits_indefinitely(self):
        pending = PendingRequests()
        request = pending.register(RequestKind.JOIN_LOBBY)

        await asyncio.sleep(0.02)

        assert not request.done

    async def test_abandon_all(self):
        pending = PendingRequests()
        join = pending.register(RequestKind.JOIN_LOBBY)
        listing = pending.register(RequestKind.LIST_LOBBIES, fallback=list)

        pending.abandon_all("connection closed")

        assert await listing.future == []
        with pytest.raises(LobbyRequestError, match="connection closed"):
            await join.future
        assert pending.outstanding() == 0

    async def test_discard_settles_unsent_request(self):
        pending = PendingRequests()
        request = pending.register(RequestKind.CREATE_LOBBY, timeout=5)

        pending.discard(request)
        await drain()

        with pytest.raises(LobbyRequestError, match="not sent"):
            await request.future
        assert request._timer is None

    async def test_settled_request_is_not_resolved_again(self):
        pending = PendingRequests()
        request = pending.register(RequestKind.LIST_LOBBIES)
        pending.resolve_oldest(RequestKind.LIST_LOBBIES, ["first"])

        assert pending.resolve_oldest(RequestKind.LIST_LOBBIES, ["second"]) is False
        assert await request.future == ["first"]
