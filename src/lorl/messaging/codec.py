"""JSON text codec for wire frames."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from lorl.messaging.types import ClientMessage


class DecodeError(Exception):
    """Error raised when an inbound frame is not a JSON object."""


# Frames larger than this many UTF-8 bytes are dropped without parsing.
MAX_FRAME_LEN = 256 * 1024


def encode(message: ClientMessage) -> str:
    """Serialize an outbound intent to a JSON text frame with camelCase keys."""
    return message.model_dump_json(by_alias=True)


def decode(raw: str | bytes) -> dict[str, Any]:
    """Parse a text frame into a dict.

    Raises DecodeError if the frame is oversized, not valid JSON, or not a
    JSON object.
    """
    size = len(raw.encode(errors="surrogatepass")) if isinstance(raw, str) else len(raw)
    if size > MAX_FRAME_LEN:
        raise DecodeError(f"frame too large: {size} bytes (max {MAX_FRAME_LEN})")
    try:
        result = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"failed to decode JSON frame: {e}") from e

    if not isinstance(result, dict):
        raise DecodeError(f"expected object, got {type(result).__name__}")

    return result
