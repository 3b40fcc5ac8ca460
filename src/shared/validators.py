"""Shared validation helpers for server addresses."""

_WS_SCHEMES = ("ws://", "wss://")


def validate_server_url(value: str) -> str:
    """Validate a session server URL and return it stripped.

    Accepts only ``ws://`` and ``wss://`` URLs with a non-empty host part.
    Raises ValueError otherwise.
    """
    stripped = value.strip()
    if not stripped:
        raise ValueError("Server URL must not be empty")
    if not stripped.startswith(_WS_SCHEMES):
        raise ValueError(f"Server URL must start with ws:// or wss://, got {stripped!r}")
    scheme_end = stripped.index("://") + 3
    if not stripped[scheme_end:].strip("/"):
        raise ValueError(f"Server URL has no host: {stripped!r}")
    return stripped


def http_base_url(server_url: str) -> str:
    """Map a WebSocket server URL to the HTTP base URL of the same host.

    ``wss://`` becomes ``https://`` and ``ws://`` becomes ``http://``; a
    trailing slash is dropped.
    """
    url = validate_server_url(server_url)
    if url.startswith("wss://"):
        url = "https://" + url.removeprefix("wss://")
    else:
        url = "http://" + url.removeprefix("ws://")
    return url.rstrip("/")
