"""Bounded log of recent problems for an external reporting surface.

ErrorLog is a logging.Handler: modules keep logging through their own
module-level loggers, and the handler retains the most recent WARNING and
above records. Older entries fall off once capacity is reached.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict

DEFAULT_CAPACITY = 50

# Root of every logger in this project
PROJECT_LOGGERS = ("domain", "infrastructure", "application")


class ErrorEntry(BaseModel):
    """One retained log record."""

    timestamp: datetime
    level: str
    logger: str
    message: str

    model_config = ConfigDict(frozen=True)


class ErrorLog(logging.Handler):
    """Keeps the last `capacity` WARNING+ records."""

    def __init__(
        self, capacity: int = DEFAULT_CAPACITY, level: int = logging.WARNING
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        super().__init__(level=level)
        self.capacity = capacity
        self._entries: deque[ErrorEntry] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = ErrorEntry(
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc),
                level=record.levelname,
                logger=record.name,
                message=record.getMessage(),
            )
        except Exception:
            self.handleError(record)
            return
        self._entries.append(entry)

    def entries(self) -> list[ErrorEntry]:
        """Oldest first."""
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def install(self, names: tuple[str, ...] = PROJECT_LOGGERS) -> "ErrorLog":
        """Attach to the named loggers and return self."""
        for name in names:
            logging.getLogger(name).addHandler(self)
        return self

    def remove(self, names: tuple[str, ...] = PROJECT_LOGGERS) -> None:
        for name in names:
            logging.getLogger(name).removeHandler(self)
