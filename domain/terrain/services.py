"""Terrain Bounded Context - Domain Services.

Pure domain logic for terrain calculations.
NO I/O operations - elevation lookups are implemented by infrastructure
adapters under `src/infrastructure/elevation/` via domain ports.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

import numpy as np

from domain.geodesy.value_objects import GeoPoint
from domain.propagation.physics import (
    FRESNEL_CLEARANCE_RATIO,
    free_space_path_loss_db,
    fresnel_radius_m,
)
from domain.terrain.errors import InvalidProfileError, PointOutOfBoundsError
from domain.terrain.value_objects import (
    ElevationSample,
    PathProfile,
    ProfileSample,
    TerrainGrid,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Main Service: analyze_profile
# ---------------------------------------------------------------------------
def analyze_profile(
    samples: Sequence[ElevationSample],
    tx_height_m: float,
    rx_height_m: float,
    frequency_ghz: float,
) -> PathProfile:
    """Check 60% first Fresnel zone clearance along an elevation profile.

    The sight line runs from the Tx antenna (first sample terrain + Tx
    height) to the Rx antenna (last sample terrain + Rx height). At every
    sample the 60% Fresnel boundary is the sight line lowered by
    0.6 * Fresnel radius, and margin = terrain - boundary. The worst sample
    is the one with the largest margin; the link is obstructed when that
    margin is positive.

    Args:
        samples: Elevation samples ordered from Tx (first) to Rx (last)
        tx_height_m: Tx antenna height above ground
        rx_height_m: Rx antenna height above ground
        frequency_ghz: Operating frequency in GHz

    Returns:
        PathProfile with per-sample geometry, margin and FSPL

    Raises:
        InvalidProfileError: Empty profile, non-positive total distance,
            decreasing distances, non-finite elevations, non-positive
            frequency or negative antenna heights

    Example:
        >>> samples = [ElevationSample(distance_m=d, elevation_m=500.0)
        ...            for d in (0.0, 2500.0, 5000.0)]
        >>> profile = analyze_profile(samples, 30.0, 10.0, 5.8)
        >>> profile.is_obstructed
        False
    """
    # PRE: parameters
    if not samples:
        raise InvalidProfileError("Profile has no samples")
    if frequency_ghz <= 0:
        raise InvalidProfileError(f"Frequency must be positive, got {frequency_ghz}")
    if tx_height_m < 0 or rx_height_m < 0:
        raise InvalidProfileError(
            f"Antenna heights must be >= 0, got tx={tx_height_m} rx={rx_height_m}"
        )

    distances_m = np.array([s.distance_m for s in samples], dtype=np.float64)
    terrain = np.array([s.elevation_m for s in samples], dtype=np.float64)

    # PRE: profile shape
    if not np.all(np.isfinite(terrain)):
        raise InvalidProfileError("Profile contains non-finite elevations")
    if np.any(np.diff(distances_m) < 0):
        raise InvalidProfileError("Sample distances must be non-decreasing")

    distances_km = distances_m / 1000.0
    total_km = float(distances_km[-1])
    if total_km <= 0:
        raise InvalidProfileError(
            f"Total distance must be positive, got {total_km} km"
        )

    # Sight line: linear interpolation between the two antenna tips
    tx_abs = float(terrain[0]) + tx_height_m
    rx_abs = float(terrain[-1]) + rx_height_m
    t = distances_km / total_km
    los = tx_abs + (rx_abs - tx_abs) * t

    # fresnel_radius_m is 0 at (and beyond) both endpoints
    radius = np.array(
        [fresnel_radius_m(float(d), total_km, frequency_ghz) for d in distances_km],
        dtype=np.float64,
    )

    boundary = los - FRESNEL_CLEARANCE_RATIO * radius
    margin = terrain - boundary

    worst_index = int(np.argmax(margin))
    max_margin = float(margin[worst_index])

    profile_samples = tuple(
        ProfileSample(
            distance_km=float(distances_km[i]),
            terrain_m=float(terrain[i]),
            los_m=float(los[i]),
            fresnel_boundary_m=float(boundary[i]),
            margin_m=float(margin[i]),
        )
        for i in range(len(samples))
    )

    profile = PathProfile(
        samples=profile_samples,
        total_distance_km=total_km,
        frequency_ghz=frequency_ghz,
        margin_m=-max_margin,
        is_obstructed=max_margin > 0,
        fspl_db=free_space_path_loss_db(total_km, frequency_ghz),
        worst_index=worst_index,
    )
    logger.debug(
        "Profile %.3f km, %d samples: margin %.2f m at %.3f km (obstructed=%s)",
        total_km,
        len(profile_samples),
        profile.margin_m,
        profile.worst_sample.distance_km,
        profile.is_obstructed,
    )
    return profile


# ---------------------------------------------------------------------------
# Bilinear Interpolation (offline DEM lookups)
# ---------------------------------------------------------------------------
def bilinear_interpolate(grid: TerrainGrid, point: GeoPoint) -> tuple[float, bool]:
    """Interpolate elevation at an arbitrary point from the 4 nearest pixels.

    Points exactly on grid edges use clamped indices, so bilinear degrades
    to linear on edges and nearest on corners.

    Args:
        grid: TerrainGrid with elevation data
        point: Geographic point to interpolate

    Returns:
        Tuple of (elevation_m, is_nodata); (NaN, True) if any neighbour is NaN

    Raises:
        PointOutOfBoundsError: If point lies outside the grid bounds
    """
    if not grid.bounds.contains(point):
        raise PointOutOfBoundsError(point, grid.bounds)

    # Row 0 is the north edge, so y is inverted
    px = (point.longitude - grid.bounds.min_x) / grid.resolution[0]
    py = (grid.bounds.max_y - point.latitude) / grid.resolution[1]

    height, width = grid.data.shape
    x0 = max(0, min(int(math.floor(px)), width - 1))
    y0 = max(0, min(int(math.floor(py)), height - 1))
    x1 = min(x0 + 1, width - 1)
    y1 = min(y0 + 1, height - 1)

    q11 = float(grid.data[y0, x0])  # top-left
    q21 = float(grid.data[y0, x1])  # top-right
    q12 = float(grid.data[y1, x0])  # bottom-left
    q22 = float(grid.data[y1, x1])  # bottom-right

    if any(math.isnan(q) for q in (q11, q21, q12, q22)):
        return (float("nan"), True)

    fx = px - math.floor(px)
    fy = py - math.floor(py)

    elevation = (
        q11 * (1 - fx) * (1 - fy)
        + q21 * fx * (1 - fy)
        + q12 * (1 - fx) * fy
        + q22 * fx * fy
    )
    return (float(elevation), False)
