"""
Logging setup for pinaudit.

Library modules obtain loggers through :func:`get_logger`; only the CLI
calls :func:`setup_logging`. Until it does, every ``pinaudit.*`` logger is
silent (a ``NullHandler`` is attached), so embedding the closure builder in
another program never prints anything unexpected.

``-v`` shows one INFO line per processed package; ``-vv`` adds the
metadata queries and pin lookups at DEBUG.
"""

from __future__ import annotations

import copy
import os
import sys
import logging
import threading
from typing import IO, Optional

from pinaudit.constants import (
    LOG_DATE_FORMAT,
    LOG_DEFAULT_FORMAT,
    LOG_VERBOSE_FORMAT,
)

ROOT_LOGGER_NAME = "pinaudit"

_ANSI_RESET = "\033[0m"
_LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}

_setup_lock = threading.Lock()


class ColoredFormatter(logging.Formatter):
    """Prints the level name in colour when writing to a terminal."""

    def __init__(self, fmt: str, *, datefmt: Optional[str] = None, use_color: bool = True) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        color = _LEVEL_COLORS.get(record.levelno)
        if not (self.use_color and color):
            return super().format(record)

        # Other handlers share the record; colour a copy.
        tinted = copy.copy(record)
        tinted.levelname = f"{color}{record.levelname}{_ANSI_RESET}"
        return super().format(tinted)


def _wants_color(stream: IO[str]) -> bool:
    if os.environ.get("NO_COLOR") or os.environ.get("CI"):
        return False
    isatty = getattr(stream, "isatty", None)
    try:
        return bool(isatty and isatty())
    except (OSError, ValueError):
        return False


def _root() -> logging.Logger:
    return logging.getLogger(ROOT_LOGGER_NAME)


def verbosity_to_level(verbose: int) -> int:
    """Map a ``-v`` count to a logging level.

    ``0`` keeps warnings only, ``1`` adds per-package progress (INFO) and
    ``2`` or more enables DEBUG output.
    """
    if verbose <= 0:
        return logging.WARNING
    return logging.INFO if verbose == 1 else logging.DEBUG


def setup_logging(
    *,
    level: int = logging.INFO,
    verbose: bool = False,
    stream: Optional[IO[str]] = None,
) -> None:
    """Send ``pinaudit`` log records to ``stream`` (stderr by default).

    Calling it again replaces the handler rather than adding a second one.

    Args:
        level: Threshold for the package logger.
        verbose: Use the timestamped format with logger names.
        stream: Where records are written.
    """
    target = stream if stream is not None else sys.stderr
    handler = logging.StreamHandler(target)
    handler.setFormatter(
        ColoredFormatter(
            LOG_VERBOSE_FORMAT if verbose else LOG_DEFAULT_FORMAT,
            datefmt=LOG_DATE_FORMAT,
            use_color=_wants_color(target),
        )
    )

    with _setup_lock:
        root = _root()
        root.handlers[:] = [handler]
        root.setLevel(level)
        root.propagate = False


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger for ``name`` inside the ``pinaudit`` namespace.

    ``get_logger("closure")`` and ``get_logger("pinaudit.closure")`` return
    the same logger.
    """
    root = _root()
    if not root.handlers:
        root.addHandler(logging.NullHandler())

    if not name or name == ROOT_LOGGER_NAME:
        return root
    if name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def is_logging_configured() -> bool:
    """True while :func:`setup_logging` output is active."""
    return any(not isinstance(handler, logging.NullHandler) for handler in _root().handlers)


def disable_logging() -> None:
    """Silence pinaudit logging again."""
    with _setup_lock:
        root = _root()
        root.handlers[:] = [logging.NullHandler()]
        root.setLevel(logging.NOTSET)
        root.propagate = True
