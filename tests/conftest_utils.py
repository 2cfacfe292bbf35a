"""Shared test helpers.

Fakes for the elevation ports and the queue's clock, plus builders for
synthetic elevation profiles and GeoTIFF files. Used by:
- tests/fetch/
- tests/siting/
- tests/elevation/
- tests/application/
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any

import numpy as np
import rasterio
from affine import Affine
from numpy.typing import NDArray

from domain.errors import ExternalServiceError
from domain.geodesy.value_objects import GeoPoint, PlanarPoint
from domain.terrain.value_objects import ElevationSample

# Reference link from the field scenarios (Swiss plateau)
TX_POINT = GeoPoint(latitude=46.818, longitude=8.227)
RX_POINT = GeoPoint(latitude=46.858, longitude=8.267)

# Receiver used by sampler tests, on the LV95 origin
RECEIVER_PLANAR = PlanarPoint(easting=2_600_000.0, northing=1_200_000.0)
RECEIVER_GEO = GeoPoint(latitude=46.95108, longitude=7.43864)


class FakeClock:
    """Manual monotonic clock; sleep() advances it and records the delay."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)

    def advance(self, seconds: float) -> None:
        self.now += seconds


def flat_samples(
    n: int = 10, total_m: float = 5000.0, elevation_m: float = 500.0
) -> list[ElevationSample]:
    """n evenly spaced samples at constant elevation over total_m."""
    step = total_m / (n - 1)
    return [
        ElevationSample(distance_m=i * step, elevation_m=elevation_m) for i in range(n)
    ]


class FakeProfileSource:
    """ElevationProfileSource returning fixed samples (or raising)."""

    def __init__(
        self,
        samples: list[ElevationSample] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.samples = samples if samples is not None else flat_samples()
        self.error = error
        self.calls: list[tuple[PlanarPoint, PlanarPoint, int]] = []
        self.gate: asyncio.Event | None = None

    async def fetch_profile(
        self, start: PlanarPoint, end: PlanarPoint, n_samples: int
    ) -> list[ElevationSample]:
        self.calls.append((start, end, n_samples))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.samples)


class FakeHeightSource:
    """PointElevationSource driven by a function of the planar offset.

    `height(dx, dy)` returns metres, or None to simulate a failed lookup.
    Offsets are measured from `origin`. Tracks concurrent calls.
    """

    def __init__(
        self,
        height: Callable[[float, float], float | None] = lambda dx, dy: 100.0,
        origin: PlanarPoint = RECEIVER_PLANAR,
    ) -> None:
        self.height = height
        self.origin = origin
        self.calls: list[tuple[float, float]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.before_lookup: Callable[[int], None] | None = None

    async def height_at(self, point: PlanarPoint) -> float:
        dx = round(point.easting - self.origin.easting, 6)
        dy = round(point.northing - self.origin.northing, 6)
        self.calls.append((dx, dy))
        if self.before_lookup is not None:
            self.before_lookup(len(self.calls))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            value = self.height(dx, dy)
        finally:
            self.in_flight -= 1
        if value is None:
            raise ExternalServiceError(
                f"no height at ({dx}, {dy})", category="height", status_code=503
            )
        return value


def write_geotiff(
    path: Path,
    data: NDArray[Any],
    transform: Affine,
    crs: str | None = "EPSG:4326",
    nodata: float | None = None,
) -> Path:
    """Write a 2D (single band) or 3D (bands x rows x cols) GeoTIFF.

    crs=None writes a CRS-less file.
    """
    if data.ndim == 2:
        data = data[np.newaxis, ...]
    count, height, width = data.shape

    kwargs: dict[str, Any] = {
        "driver": "GTiff",
        "height": height,
        "width": width,
        "count": count,
        "dtype": str(data.dtype),
        "transform": transform,
    }
    if crs is not None:
        kwargs["crs"] = crs
    if nodata is not None:
        kwargs["nodata"] = nodata

    with rasterio.open(path, "w", **kwargs) as dst:
        for band_idx in range(count):
            dst.write(data[band_idx], band_idx + 1)
    return path
