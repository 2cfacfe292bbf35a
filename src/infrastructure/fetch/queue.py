"""Rate-limited, single-flight FIFO queue for outbound HTTP requests.

Every network consumer (profile, point height, place search, map tiles)
funnels its requests through one RateLimitedFetchQueue so the external
services never see more than one request in flight and never see two
requests closer together than the configured delay.

Lifecycle:
1) enqueue() appends a FetchTask and calls start_drain()
2) start_drain() spawns the drain loop only when the queue is Idle
3) The drain loop waits out the inter-dispatch delay, dispatches the head
   task, resolves its future, and repeats until the queue is empty
4) The queue flips back to Idle in the same step that observes it empty

No retries and no cancellation: a failed request fails its own future with
ExternalServiceError, whatever the underlying exception, and the loop moves
straight on to the next task.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx

from domain.errors import ExternalServiceError

# Module-level logger (reused across all calls)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Policy constants
# ---------------------------------------------------------------------------
TILE_DELAY_S = 0.05  # background imagery tiles
FOREGROUND_DELAY_S = 0.25  # elevation profile, point height, place search
RATE_WINDOW_S = 60.0  # trailing window for dispatch counts
REQUEST_TIMEOUT_S = 10.0


class FetchCategory(str, Enum):
    PROFILE = "profile"
    HEIGHT = "height"
    SEARCH = "search"
    TILE = "tile"


class QueueState(str, Enum):
    IDLE = "idle"
    DRAINING = "draining"


@dataclass
class FetchTask:
    """Queued unit of work, owned by the queue until dispatched."""

    url: str
    category: FetchCategory
    future: asyncio.Future[httpx.Response] = field(repr=False)
    params: Mapping[str, Any] | None = None


class RateWindow:
    """Dispatch timestamps of one category over a trailing window.

    Observability only; never consulted for admission.
    """

    def __init__(self, window_s: float = RATE_WINDOW_S) -> None:
        self.window_s = window_s
        self._stamps: deque[float] = deque()

    def record(self, now: float) -> None:
        self._stamps.append(now)
        self._prune(now)

    def count(self, now: float) -> int:
        self._prune(now)
        return len(self._stamps)

    def _prune(self, now: float) -> None:
        while self._stamps and now - self._stamps[0] >= self.window_s:
            self._stamps.popleft()


class RateLimitedFetchQueue:
    """Single-flight FIFO scheduler for outbound requests.

    Parameters
    ----------
    client: httpx.AsyncClient
        Shared client used for every dispatch. The queue does not close it.
    foreground_delay_s: float
        Minimum gap before dispatching a profile/height/search request.
    tile_delay_s: float
        Minimum gap before dispatching a tile request.
    clock, sleep:
        Injectable monotonic clock and async sleep (tests use fakes).
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        foreground_delay_s: float = FOREGROUND_DELAY_S,
        tile_delay_s: float = TILE_DELAY_S,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if foreground_delay_s < 0 or tile_delay_s < 0:
            raise ValueError("Delays must be >= 0")
        self.client = client
        self.foreground_delay_s = foreground_delay_s
        self.tile_delay_s = tile_delay_s
        self._clock = clock
        self._sleep = sleep

        self._pending: deque[FetchTask] = deque()
        self._state = QueueState.IDLE
        self._drain_task: asyncio.Task[None] | None = None
        self._last_dispatch: float | None = None

        self._windows = {c: RateWindow() for c in FetchCategory}
        self.dispatched = {c: 0 for c in FetchCategory}
        self.failed = {c: 0 for c in FetchCategory}
        self.drain_loops_started = 0

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------
    @property
    def state(self) -> QueueState:
        return self._state

    @property
    def pending(self) -> int:
        return len(self._pending)

    def enqueue(
        self,
        url: str,
        category: FetchCategory,
        params: Mapping[str, Any] | None = None,
    ) -> asyncio.Future[httpx.Response]:
        """Queue a GET request and return a future for its response.

        The future resolves to a 2xx response or fails with
        ExternalServiceError. Must be called from inside a running loop.
        """
        loop = asyncio.get_running_loop()
        task = FetchTask(
            url=url, category=category, future=loop.create_future(), params=params
        )
        self._pending.append(task)
        logger.debug(
            "Queued %s request %s (%d pending)", category.value, url, self.pending
        )
        self.start_drain()
        return task.future

    async def fetch(
        self,
        url: str,
        category: FetchCategory,
        params: Mapping[str, Any] | None = None,
    ) -> httpx.Response:
        """Enqueue and wait for the response."""
        return await self.enqueue(url, category, params)

    def start_drain(self) -> bool:
        """Start the drain loop unless one is already running.

        Returns:
            True if a new loop was started, False if already draining or
            there is nothing to drain
        """
        if self._state is QueueState.DRAINING or not self._pending:
            return False
        self._state = QueueState.DRAINING
        self.drain_loops_started += 1
        self._drain_task = asyncio.get_running_loop().create_task(self._drain())
        return True

    async def join(self) -> None:
        """Wait until the current drain loop (if any) has finished."""
        while self._drain_task is not None and not self._drain_task.done():
            await asyncio.shield(self._drain_task)

    def dispatch_counts(self) -> dict[FetchCategory, int]:
        """Dispatches per category within the trailing 60 seconds."""
        now = self._clock()
        return {c: w.count(now) for c, w in self._windows.items()}

    def delay_for(self, category: FetchCategory) -> float:
        if category is FetchCategory.TILE:
            return self.tile_delay_s
        return self.foreground_delay_s

    # -----------------------------------------------------------------------
    # Drain loop
    # -----------------------------------------------------------------------
    async def _drain(self) -> None:
        try:
            while self._pending:
                task = self._pending.popleft()
                await self._wait_turn(task.category)
                await self._dispatch(task)
        finally:
            # Nothing awaits between the empty check and this flip
            self._state = QueueState.IDLE
            self._drain_task = None

    async def _wait_turn(self, category: FetchCategory) -> None:
        if self._last_dispatch is None:
            return
        remaining = self.delay_for(category) - (self._clock() - self._last_dispatch)
        if remaining > 0:
            await self._sleep(remaining)

    async def _dispatch(self, task: FetchTask) -> None:
        now = self._clock()
        self._last_dispatch = now
        self._windows[task.category].record(now)
        self.dispatched[task.category] += 1

        try:
            response = await self.client.get(
                task.url, params=task.params, timeout=REQUEST_TIMEOUT_S
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self._fail(
                task,
                ExternalServiceError(
                    f"{task.category.value} request returned HTTP {e.response.status_code}",
                    category=task.category.value,
                    url=task.url,
                    status_code=e.response.status_code,
                ),
                e,
            )
            return
        except httpx.HTTPError as e:
            self._fail(
                task,
                ExternalServiceError(
                    f"{task.category.value} request failed: {e}",
                    category=task.category.value,
                    url=task.url,
                ),
                e,
            )
            return
        except Exception as e:
            # InvalidURL, StreamError or a transport raising a non-httpx error
            logger.exception("Unexpected error dispatching %s", task.url)
            self._fail(
                task,
                ExternalServiceError(
                    f"{task.category.value} request failed: {type(e).__name__}: {e}",
                    category=task.category.value,
                    url=task.url,
                ),
                e,
            )
            return

        if not task.future.done():
            task.future.set_result(response)

    def _fail(
        self, task: FetchTask, error: ExternalServiceError, cause: Exception
    ) -> None:
        error.__cause__ = cause
        self.failed[task.category] += 1
        logger.warning("Fetch failed (%s): %s", task.category.value, error)
        if not task.future.done():
            task.future.set_exception(error)
