"""Logging helpers for chatpilot.

Wires the package logger to stderr and an optional file, and provides
the bounded activity log the monitoring loop reports its progress through.
"""

from __future__ import annotations

import logging
import sys
from collections import deque

from chatpilot.config.settings import LoggingConfig
from chatpilot.domain.models import ActivityEntry

_HANDLER_MARK = "_chatpilot_handler"


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Attach console and optional file output to the ``chatpilot`` logger.

    Calling it again replaces the handlers installed by the previous call.
    """
    config = config or LoggingConfig()
    package_logger = logging.getLogger("chatpilot")
    package_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for handler in list(package_logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            package_logger.removeHandler(handler)
            handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.file:
        handlers.append(logging.FileHandler(config.file))

    fmt = logging.Formatter(config.format)
    for handler in handlers:
        handler.setFormatter(fmt)
        setattr(handler, _HANDLER_MARK, True)
        package_logger.addHandler(handler)

    package_logger.debug("Logging configured (level=%s, file=%s)", config.level, config.file)


def preview(text: str, limit: int = 30) -> str:
    """Shorten text for a one-line log entry."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."


class ActivityLog:
    """Ring buffer of the most recent human-readable monitoring events.

    Every entry is also forwarded to a standard logger so the same events
    show up in the console/file output.
    """

    def __init__(self, capacity: int = 10, logger: logging.Logger | None = None) -> None:
        self._entries: deque[ActivityEntry] = deque(maxlen=capacity)
        self._logger = logger or logging.getLogger("chatpilot.activity")

    @property
    def entries(self) -> list[ActivityEntry]:
        return list(self._entries)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def add(self, message: str, level: int = logging.INFO) -> ActivityEntry:
        entry = ActivityEntry(message=message)
        self._entries.append(entry)
        self._logger.log(level, message)
        return entry

    def clear(self) -> None:
        self._entries.clear()

    @property
    def count(self) -> int:
        return len(self._entries)
