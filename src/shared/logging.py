"""Structured logging setup for the Lorl client runtime.

The runtime is embedded in host applications, so it never configures logging
on import. Hosts call ``setup_logging()`` once, or route the ``lorl`` loggers
through their own stdlib configuration.

Environment variables:
- LORL_LOG_FORMAT: "json" for machine-readable lines, "console" or unset for
  human-readable output.
- LORL_LOG_LEVEL: a stdlib level name, INFO when unset.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel

if TYPE_CHECKING:
    from collections.abc import Collection, MutableMapping
    from typing import Any

LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

_LOG_FORMATS = ("json", "console", "")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# websockets logs every frame and httpx every request below WARNING.
_QUIET_LOGGERS = ("websockets", "httpx", "httpcore")


def _plain_value(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True)
    return value


def _serialize_values(
    _logger: object,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Replace enums and pydantic models (also one level inside dicts) with plain values."""
    for key, value in event_dict.items():
        if isinstance(value, dict):
            event_dict[key] = {k: _plain_value(v) for k, v in value.items()}
        else:
            event_dict[key] = _plain_value(value)
    return event_dict


def _is_test() -> bool:
    return "pytest" in sys.modules


def _env_choice(name: str, allowed: Collection[str], default: str) -> str:
    value = os.environ.get(name, default)
    normalized = value.upper() if default.isupper() else value.lower()
    if normalized not in allowed:
        options = ", ".join(repr(a) for a in allowed if a)
        msg = f"Invalid {name}={value!r}. Must be one of {options}."
        raise ValueError(msg)
    return normalized


def _handler(handler: logging.Handler, *, json_mode: bool, colors: bool) -> logging.Handler:
    renderer = structlog.processors.JSONRenderer() if json_mode else structlog.dev.ConsoleRenderer(colors=colors)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                renderer,
            ],
        ),
    )
    return handler


def bind_client_context(**values: object) -> None:
    """Attach identity fields (player_id, game_id, lobby_id) to every following log line. None values are skipped."""
    structlog.contextvars.bind_contextvars(**{k: v for k, v in values.items() if v is not None})


def setup_logging(
    log_dir: Path | str | None = None,
    level: int | None = None,
) -> Path | None:
    """Route structlog through the root logger to stdout and, with log_dir, a timestamped file.

    Returns the log file path, or None when no file is written. Calling it
    again replaces the handlers of the previous call.
    """
    json_mode = _env_choice("LORL_LOG_FORMAT", _LOG_FORMATS, "") == "json"
    if level is None:
        level = getattr(logging, _env_choice("LORL_LOG_LEVEL", _LOG_LEVELS, "INFO"))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _serialize_values,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            # Exceptions are rendered by each handler's formatter.
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.addHandler(_handler(logging.StreamHandler(sys.stdout), json_mode=json_mode, colors=sys.stdout.isatty()))

    if log_dir is None or _is_test():
        return None
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    file_path = log_path / f"{datetime.now(tz=UTC).strftime(LOG_FILE_TIMESTAMP_FORMAT)}.log"
    root.addHandler(_handler(logging.FileHandler(file_path), json_mode=json_mode, colors=False))
    return file_path
