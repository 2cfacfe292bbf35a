"""Composition root: one shared queue behind every swisstopo adapter."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from application.engine import LinkAnalysisEngine
from application.settings import EngineSettings
from infrastructure.diagnostics import ErrorLog
from infrastructure.elevation.swisstopo import (
    SwisstopoElevationService,
    SwisstopoPlaceSearch,
)
from infrastructure.fetch.queue import RateLimitedFetchQueue
from infrastructure.tiles import TileFetcher


@dataclass
class LinkPlannerServices:
    """Everything a front end needs, sharing a single request queue."""

    engine: LinkAnalysisEngine
    queue: RateLimitedFetchQueue
    elevation: SwisstopoElevationService
    search: SwisstopoPlaceSearch
    tiles: TileFetcher
    error_log: ErrorLog


def build_services(
    client: httpx.AsyncClient, settings: EngineSettings | None = None
) -> LinkPlannerServices:
    """Wire the engine and the non-core adapters to one queue.

    The caller owns `client` and closes it. The returned ErrorLog is already
    attached to the project loggers; call error_log.remove() to detach it.
    """
    settings = settings or EngineSettings()
    queue = RateLimitedFetchQueue(
        client,
        foreground_delay_s=settings.foreground_delay_s,
        tile_delay_s=settings.tile_delay_s,
    )
    elevation = SwisstopoElevationService(queue)
    return LinkPlannerServices(
        engine=LinkAnalysisEngine(elevation, elevation, settings),
        queue=queue,
        elevation=elevation,
        search=SwisstopoPlaceSearch(queue),
        tiles=TileFetcher(queue),
        error_log=ErrorLog(settings.error_log_capacity).install(),
    )
