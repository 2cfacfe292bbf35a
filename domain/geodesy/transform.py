"""Geodesy Bounded Context - Coordinate Transforms.

Approximate conversion between WGS84 and the Swiss LV95 grid using the
swisstopo polynomial formulas. The forward and inverse polynomials were
fitted independently, so they are NOT exact inverses of each other:
to_geo(to_planar(p)) lands within about a metre of p, and the error depends
on position. Callers needing round-trip fidelity apply round_trip_correction.

Pure functions, no I/O.
"""

from __future__ import annotations

import logging

from pyproj import Geod

from domain.geodesy.value_objects import GeoPoint, PlanarPoint

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
# Auxiliary origin of the forward formulas, in arc-seconds (Bern)
_LAT_ORIGIN_SEC = 169028.66
_LON_ORIGIN_SEC = 26782.5

# False easting/northing of LV95
_E_ORIGIN = 2_600_000.0
_N_ORIGIN = 1_200_000.0

# WGS84 ellipsoid, only used to express residuals in metres
_geod = Geod(ellps="WGS84")


# ---------------------------------------------------------------------------
# WGS84 -> LV95
# ---------------------------------------------------------------------------
def to_planar(point: GeoPoint) -> PlanarPoint:
    """Project a geographic coordinate onto the LV95 grid.

    Args:
        point: WGS84 coordinate

    Returns:
        PlanarPoint with easting/northing in metres
    """
    phi = (point.latitude * 3600 - _LAT_ORIGIN_SEC) / 10000
    lam = (point.longitude * 3600 - _LON_ORIGIN_SEC) / 10000

    easting = (
        2600072.37
        + 211455.93 * lam
        - 10938.51 * lam * phi
        - 0.36 * lam * phi**2
        - 44.54 * lam**3
    )
    northing = (
        1200147.07
        + 308807.95 * phi
        + 3745.25 * lam**2
        + 76.63 * phi**2
        - 194.56 * lam**2 * phi
        + 119.79 * phi**3
    )
    return PlanarPoint(easting=easting, northing=northing)


# ---------------------------------------------------------------------------
# LV95 -> WGS84
# ---------------------------------------------------------------------------
def to_geo(point: PlanarPoint) -> GeoPoint:
    """Convert an LV95 grid coordinate back to WGS84.

    Not the exact inverse of to_planar (see module docstring).
    """
    y = (point.easting - _E_ORIGIN) / 1_000_000
    x = (point.northing - _N_ORIGIN) / 1_000_000

    lam = (
        2.6779094
        + 4.728982 * y
        + 0.791484 * y * x
        + 0.1306 * y * x**2
        - 0.0436 * y**3
    )
    phi = (
        16.9023892
        + 3.238272 * x
        - 0.270978 * y**2
        - 0.002528 * x**2
        - 0.0447 * y**2 * x
        - 0.0140 * x**3
    )
    # Result of the polynomials is in units of 10000"
    return GeoPoint(latitude=phi * 100 / 36, longitude=lam * 100 / 36)


# ---------------------------------------------------------------------------
# Round-trip drift
# ---------------------------------------------------------------------------
def round_trip_correction(point: GeoPoint) -> tuple[float, float]:
    """Return (dlat, dlon) that maps to_geo(to_planar(point)) back onto point.

    Computed once from a reference point (the receiver) and applied uniformly
    to nearby grid points. Only valid in the neighbourhood of `point`.
    """
    back = to_geo(to_planar(point))
    return (point.latitude - back.latitude, point.longitude - back.longitude)


def apply_correction(point: GeoPoint, correction: tuple[float, float]) -> GeoPoint:
    """Shift a point by a (dlat, dlon) correction vector."""
    dlat, dlon = correction
    return GeoPoint(latitude=point.latitude + dlat, longitude=point.longitude + dlon)


def round_trip_residual_m(point: GeoPoint) -> float:
    """Ellipsoidal distance in metres between point and to_geo(to_planar(point)).

    Bounds the approximation error empirically; it is not a correction.
    """
    back = to_geo(to_planar(point))
    _, _, distance = _geod.inv(
        point.longitude, point.latitude, back.longitude, back.latitude
    )
    residual = float(abs(distance))
    logger.debug(
        "Round-trip residual at (%.6f, %.6f): %.3f m",
        point.latitude,
        point.longitude,
        residual,
    )
    return residual
