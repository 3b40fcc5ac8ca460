"""Check session servers before pointing a game at them.

Pings each server with a WebSocket open/close round-trip and, with --game,
lists its public lobbies over the HTTP directory endpoint.

Usage:
    uv run python bin/probe-servers.py ws://localhost:8080
    uv run python bin/probe-servers.py eu=wss://eu.example.com us=wss://us.example.com
    uv run python bin/probe-servers.py wss://eu.example.com --game tetris
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from lorl.connection.ping import ping_all
from lorl.lobby.directory import fetch_public_lobbies
from lorl.settings import ClientSettings
from shared.logging import setup_logging
from shared.validators import validate_server_url


def _parse_servers(values: list[str]) -> dict[str, str]:
    """Turn ``name=url`` or bare ``url`` arguments into a name -> url map."""
    servers = {}
    for value in values:
        name, sep, url = value.partition("=")
        if not sep:
            name, url = value, value
        servers[name] = validate_server_url(url)
    return servers


async def probe(servers: dict[str, str], game_id: str | None, settings: ClientSettings) -> int:
    """Print one line per server and its public lobbies. Return the number of offline servers."""
    statuses = await ping_all(servers, timeout=settings.ping_timeout_seconds)
    offline = 0
    for name, status in statuses.items():
        if not status.online:
            offline += 1
            print(f"{name:<24} offline")
            continue
        print(f"{name:<24} online  {status.latency_ms}ms")
        if game_id is None:
            continue
        lobbies = await fetch_public_lobbies(servers[name], game_id, timeout=settings.list_timeout_seconds)
        for lobby in lobbies:
            capacity = f"{lobby.player_count}/{lobby.max_players}" if lobby.max_players else str(lobby.player_count)
            print(f"    {lobby.display_name:<32} {capacity:>7}  id={lobby.id}")
        if not lobbies:
            print("    (no public lobbies)")
    return offline


def main() -> None:
    parser = argparse.ArgumentParser(description="Ping session servers and list their public lobbies")
    parser.add_argument("servers", nargs="+", metavar="[NAME=]URL", help="ws:// or wss:// server url")
    parser.add_argument("--game", metavar="GAME_ID", help="also list public lobbies for this game")
    parser.add_argument("-v", "--verbose", action="store_true", help="show client debug logs")
    args = parser.parse_args()

    try:
        servers = _parse_servers(args.servers)
    except ValueError as e:
        print(e, file=sys.stderr)
        sys.exit(2)

    settings = ClientSettings(game_id=args.game or "probe")
    setup_logging(log_dir=settings.log_dir, level=logging.DEBUG if args.verbose else logging.WARNING)

    offline = asyncio.run(probe(servers, args.game, settings))
    if offline:
        sys.exit(1)


if __name__ == "__main__":
    main()
