"""Outbound request scheduling shared by every network adapter."""

from .queue import (
    FOREGROUND_DELAY_S,
    TILE_DELAY_S,
    FetchCategory,
    FetchTask,
    QueueState,
    RateLimitedFetchQueue,
    RateWindow,
)

__all__ = [
    "FOREGROUND_DELAY_S",
    "TILE_DELAY_S",
    "FetchCategory",
    "FetchTask",
    "QueueState",
    "RateLimitedFetchQueue",
    "RateWindow",
]
