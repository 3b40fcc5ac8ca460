"""Typed exceptions raised by the client runtime.

Transport failures and rejected handshakes are the only conditions that
reach callers as exceptions. Everything else (malformed frames, handler
failures, mid-session drops) is reported through the event bus.
"""


class LorlError(Exception):
    """Base exception for all client runtime errors."""


class ConnectionFailedError(LorlError):
    """The socket to the session server could not be opened.

    Attributes:
        url: The server URL that was being opened.

    """

    def __init__(self, url: str, message: str) -> None:
        self.url = url
        super().__init__(message)


class ConnectTimeoutError(ConnectionFailedError):
    """The transport did not report open within the connect timeout."""

    def __init__(self, url: str, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(url, f"connection to {url} timed out after {timeout:g}s")


class TransportError(ConnectionFailedError):
    """The transport refused or aborted the connection attempt."""


class LobbyRequestError(LorlError):
    """A create/join lobby handshake was rejected or abandoned.

    Raised when the server answers with an ``error`` message, when the socket
    drops while the handshake is outstanding, or when the optional handshake
    deadline passes.
    """
