"""Structured logging setup for webcal-ai.

Provides a consistent log format across the application with ISO 8601
timestamps and pipe-separated fields, plus a per-tab adapter so that
workflow log lines can be traced back to the browsing session that
produced them.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Marks handlers added by setup_logging so repeated calls stay idempotent.
_HANDLER_ATTR = "_webcal_ai_log_handler"


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger with the project formatter.

    Calling this function multiple times is safe; the existing handler is
    reused and only its level is updated.

    Args:
        level: A standard logging level name (e.g. ``"DEBUG"``).

    Raises:
        ValueError: If *level* is not a recognised logging level string.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level!r}")

    root = logging.getLogger()
    root.setLevel(numeric_level)

    for handler in root.handlers:
        if getattr(handler, _HANDLER_ATTR, False):
            handler.setLevel(numeric_level)
            return

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))

    setattr(handler, _HANDLER_ATTR, True)
    root.addHandler(handler)

    # httpx logs every request at INFO; keep it out of normal output.
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Return a named logger."""
    return logging.getLogger(name)


class TabLoggerAdapter(logging.LoggerAdapter):
    """Prefix every message with the owning tab identifier."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[tab {self.extra['tab_id']}] {msg}", kwargs


def tab_logger(name: str, tab_id: str) -> TabLoggerAdapter:
    """Return a logger adapter that tags records with *tab_id*.

    Args:
        name: Dotted logger name, typically ``__name__`` of the caller.
        tab_id: Identifier of the browsing tab that owns the session.
    """
    return TabLoggerAdapter(logging.getLogger(name), {"tab_id": tab_id})
