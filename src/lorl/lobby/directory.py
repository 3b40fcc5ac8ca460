"""Public lobby listing over the session server's HTTP endpoint.

Used to browse lobbies before any socket is open. Failures of any kind
yield an empty list, like the socket-based listing.
"""

from __future__ import annotations

from http import HTTPStatus

import httpx
import structlog
from pydantic import ValidationError

from lorl.lobby.models import LobbySummary
from shared.validators import http_base_url

logger = structlog.get_logger()

DEFAULT_DIRECTORY_TIMEOUT = 5.0


async def fetch_public_lobbies(
    server_url: str,
    game_id: str,
    *,
    timeout: float = DEFAULT_DIRECTORY_TIMEOUT,
    client: httpx.AsyncClient | None = None,
) -> list[LobbySummary]:
    """Call GET /lobbies?game=<game_id> on the server's HTTP side."""
    try:
        url = f"{http_base_url(server_url)}/lobbies"
    except ValueError as e:
        logger.warning("lobby directory unavailable", error=str(e))
        return []

    try:
        if client is not None:
            response = await client.get(url, params={"game": game_id}, timeout=timeout)
        else:
            async with httpx.AsyncClient(timeout=timeout) as owned_client:
                response = await owned_client.get(url, params={"game": game_id})
        if response.status_code != HTTPStatus.OK:
            logger.info("lobby directory returned error", url=url, status=response.status_code)
            return []
        payload = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.info("lobby directory request failed", url=url, error=str(e) or type(e).__name__)
        return []

    entries = payload.get("lobbies") if isinstance(payload, dict) else None
    if not isinstance(entries, list):
        return []
    return _parse_summaries(entries)


def _parse_summaries(entries: list[object]) -> list[LobbySummary]:
    """Validate listing entries, skipping malformed ones."""
    lobbies = []
    for entry in entries:
        try:
            lobbies.append(LobbySummary.model_validate(entry))
        except ValidationError:
            logger.debug("skipping malformed lobby entry")
    return lobbies
