"""Logging setup for the bookmarking server.

The server logs through three families of loggers: ``backend.*`` for HTTP
and session handling, ``bookmarking.*`` for capture and replay, and the
uvicorn loggers. All of them follow BOOKMARK_LOG_LEVEL unless a level is
passed explicitly.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable

DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"

APP_LOGGER_NAME = "bookmarks.backend"
PACKAGE_LOGGERS = ("backend", "bookmarking")
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def resolve_level(level: str | None = None) -> str:
    """Return the effective level name, falling back to BOOKMARK_LOG_LEVEL, then INFO.

    Raises:
        ValueError: If the name is not a logging level
    """
    raw = level if level is not None else os.getenv("BOOKMARK_LOG_LEVEL")
    name = (raw or "INFO").strip().upper()
    if not isinstance(logging.getLevelName(name), int):
        raise ValueError(f"Unknown log level: {raw!r}")
    return name


def configure_logging(
    *,
    level: str | None = None,
    format: str = DEFAULT_FORMAT,
    datefmt: str = DEFAULT_DATEFMT,
    include_uvicorn: bool = True,
    extra_loggers: Iterable[str] | None = None,
) -> logging.Logger:
    """Configure logging for the server and the bookmarking package.

    Args:
        level: Explicit log level; overrides BOOKMARK_LOG_LEVEL.
        format: Log format string.
        datefmt: Date format string.
        include_uvicorn: Align uvicorn loggers with the chosen level.
        extra_loggers: Logger names to align besides the package loggers.

    Returns:
        The ``bookmarks.backend`` logger.
    """
    resolved_level = resolve_level(level)
    logging.basicConfig(level=resolved_level, format=format, datefmt=datefmt)

    names = [APP_LOGGER_NAME, *PACKAGE_LOGGERS, *(extra_loggers or ())]
    if include_uvicorn:
        names.extend(UVICORN_LOGGERS)
    for name in names:
        logging.getLogger(name).setLevel(resolved_level)

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.debug(f"Logging configured at {resolved_level} for {', '.join(names)}")
    return app_logger
