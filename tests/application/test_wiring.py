"""End-to-end wiring: engine, search and tiles over one mocked geoportal."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from application.engine import AnalysisRequest
from application.settings import EngineSettings
from application.wiring import build_services
from domain.geodesy.transform import to_planar
from domain.terrain.value_objects import LinkEndpoint
from infrastructure.fetch import FetchCategory, QueueState
from tests.conftest_utils import RX_POINT, TX_POINT

RX_EASTING = to_planar(RX_POINT).easting

FAST = EngineSettings(foreground_delay_s=0.0, tile_delay_s=0.0, profile_samples=5)

PROFILE = [
    {"dist": d, "alts": {"COMB": 480.0}} for d in (0.0, 1250.0, 2500.0, 3750.0, 5000.0)
]


def geoportal(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.endswith("/profile.json"):
        return httpx.Response(200, json=PROFILE)
    if path.endswith("/height"):
        # The column east of the receiver has no data
        if float(request.url.params["easting"]) > RX_EASTING + 1.0:
            return httpx.Response(500)
        return httpx.Response(200, json={"height": "480.0"})
    if path.endswith("/SearchServer"):
        return httpx.Response(
            200, json={"results": [{"attrs": {"lat": 46.9, "lon": 7.4, "label": "<b>X</b>"}}]}
        )
    return httpx.Response(200, content=b"tile")


@pytest.fixture
def services():
    client = httpx.AsyncClient(transport=httpx.MockTransport(geoportal))
    built = build_services(client, FAST)
    yield built
    built.error_log.remove()
    asyncio.run(client.aclose())


def test_one_queue_serves_every_consumer(services):
    request = AnalysisRequest(
        tx=LinkEndpoint(position=TX_POINT, height_m=30.0),
        rx=LinkEndpoint(position=RX_POINT, height_m=10.0),
        frequency_ghz=5.8,
    )

    async def main():
        result = await services.engine.analyze(request)
        hits = await services.search.search("x")
        tile = await services.tiles.fetch_tile(0, 0, 0)
        await services.queue.join()
        return result, hits, tile

    result, hits, tile = asyncio.run(main())

    assert services.engine.profiles is services.elevation
    assert services.queue.dispatched[FetchCategory.PROFILE] == 1
    assert services.queue.dispatched[FetchCategory.HEIGHT] == 9
    assert services.queue.dispatched[FetchCategory.SEARCH] == 1
    assert services.queue.dispatched[FetchCategory.TILE] == 1
    assert services.queue.state is QueueState.IDLE
    assert len(result.profile.samples) == 5
    assert [h.label for h in hits] == ["X"]
    assert tile == b"tile"


def test_settings_reach_queue_and_engine(services):
    assert services.queue.foreground_delay_s == 0.0
    assert services.queue.tile_delay_s == 0.0
    assert services.engine.settings.profile_samples == 5
    assert services.error_log.capacity == FAST.error_log_capacity


def test_error_log_collects_failed_lookups(services):
    request = AnalysisRequest(
        tx=LinkEndpoint(position=TX_POINT, height_m=30.0),
        rx=LinkEndpoint(position=RX_POINT, height_m=10.0),
        frequency_ghz=5.8,
    )

    asyncio.run(services.engine.analyze(request))

    loggers = {e.logger for e in services.error_log.entries()}
    assert all(e.level in ("WARNING", "ERROR") for e in services.error_log.entries())
    assert "infrastructure.fetch.queue" in loggers
    assert "domain.siting.services" in loggers


def test_heatmap_survives_non_http_transport_errors():
    def flaky(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/height"):
            if float(request.url.params["easting"]) > RX_EASTING + 1.0:
                raise RuntimeError("socket torn down")
        return geoportal(request)

    request = AnalysisRequest(
        tx=LinkEndpoint(position=TX_POINT, height_m=30.0),
        rx=LinkEndpoint(position=RX_POINT, height_m=10.0),
        frequency_ghz=5.8,
    )

    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(flaky)) as client:
            built = build_services(client, FAST)
            try:
                return await built.engine.analyze(request)
            finally:
                built.error_log.remove()

    result = asyncio.run(main())

    assert len(result.heatmap.points) == 9
    assert result.heatmap.missing_count() == 3
    assert result.heatmap.center.classification is not None
