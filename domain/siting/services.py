"""Siting Bounded Context - Domain Services.

Samples a square grid of candidate receiver positions around the current
receiver and estimates each position's clearance margin from the baseline
profile margin and the local terrain height difference:

    estimated_margin = baseline_margin + (point_height - center_height)

This is a first-order estimate: it assumes the Fresnel geometry of the link
does not change over a few tens of metres.

Elevations come through the PointElevationSource port. Lookups run strictly
one after another in row-major order; the adapter behind the port decides how
fast they go out.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from domain.errors import ExternalServiceError, StaleRunError
from domain.geodesy.transform import apply_correction, round_trip_correction, to_geo
from domain.geodesy.value_objects import GeoPoint, PlanarPoint
from domain.siting.value_objects import (
    CenterFallback,
    Classification,
    Heatmap,
    HeatmapConfig,
    HeatmapPoint,
)
from domain.terrain.repositories import PointElevationSource

logger = logging.getLogger(__name__)

PointCallback = Callable[[HeatmapPoint], None]


# ---------------------------------------------------------------------------
# Grid geometry
# ---------------------------------------------------------------------------
def build_grid_offsets(radius_m: float, step_m: float) -> list[tuple[float, float]]:
    """Return (dx, dy) offsets in row-major order (dy outer, dx inner).

    (0, 0) appears exactly once.

    Raises:
        ValueError: If step is not positive or radius is not a multiple of it
    """
    config = HeatmapConfig(radius_m=radius_m, step_m=step_m)
    half = config.points_per_side // 2
    ks = range(-half, half + 1)
    return [(kx * step_m, ky * step_m) for ky in ks for kx in ks]


# ---------------------------------------------------------------------------
# Margin estimate and classification
# ---------------------------------------------------------------------------
def estimate_margin(
    baseline_margin_m: float, point_height_m: float, center_height_m: float
) -> float:
    return baseline_margin_m + (point_height_m - center_height_m)


def classify_margin(
    margin_m: float, config: HeatmapConfig | None = None
) -> Classification:
    """Clear above the clear threshold, obstructed below the obstructed one."""
    config = config or HeatmapConfig()
    if margin_m > config.clear_threshold_m:
        return Classification.CLEAR
    if margin_m < config.obstructed_threshold_m:
        return Classification.OBSTRUCTED
    return Classification.MARGINAL


# ---------------------------------------------------------------------------
# Main Service: HeatmapSampler
# ---------------------------------------------------------------------------
class HeatmapSampler:
    """Builds a sensitivity heatmap around a receiver.

    Parameters
    ----------
    heights: PointElevationSource
        Port used for per-point elevation lookups.
    config: HeatmapConfig | None
        Grid geometry, thresholds and center fallback policy.
    """

    def __init__(
        self, heights: PointElevationSource, config: HeatmapConfig | None = None
    ) -> None:
        self.heights = heights
        self.config = config or HeatmapConfig()

    async def sample(
        self,
        receiver_planar: PlanarPoint,
        receiver_geo: GeoPoint,
        baseline_margin_m: float,
        *,
        run_id: int = 0,
        current_run: Callable[[], int] | None = None,
        on_point: PointCallback | None = None,
    ) -> Heatmap:
        """Sample every grid point and return the classified heatmap.

        A failed lookup leaves that point's height missing and the run goes
        on. Points are surfaced through on_point in row-major order once they
        are classified.

        Args:
            receiver_planar: Receiver position on the planar grid
            receiver_geo: Receiver's original geographic position, used to
                derive the round-trip correction applied to every point
            baseline_margin_m: Margin reported by the profile analysis
            run_id: Identifier of the analysis run this heatmap belongs to
            current_run: Returns the run that is current now; checked before
                every lookup so superseded runs stop enqueueing
            on_point: Called once per point, in row-major order

        Returns:
            Heatmap for run_id

        Raises:
            StaleRunError: If current_run() stops matching run_id
        """
        offsets = build_grid_offsets(self.config.radius_m, self.config.step_m)
        correction = round_trip_correction(receiver_geo)

        # Phase 1: sequential lookups
        heights: list[float | None] = []
        for dx, dy in offsets:
            self._ensure_current(run_id, current_run)
            planar = receiver_planar.offset(dx, dy)
            try:
                heights.append(await self.heights.height_at(planar))
            except ExternalServiceError as e:
                logger.warning(
                    "Run %d: height lookup failed at offset (%g, %g): %s",
                    run_id,
                    dx,
                    dy,
                    e,
                )
                heights.append(None)
        self._ensure_current(run_id, current_run)

        # Phase 2: center height, estimates, classification
        center_index = offsets.index((0.0, 0.0))
        center_height, fallback_used = self._center_height(
            heights, center_index, run_id
        )

        points: list[HeatmapPoint] = []
        for (dx, dy), height in zip(offsets, heights):
            planar = receiver_planar.offset(dx, dy)
            margin = None
            classification = None
            if height is not None and center_height is not None:
                margin = estimate_margin(baseline_margin_m, height, center_height)
                classification = classify_margin(margin, self.config)
            point = HeatmapPoint(
                dx=dx,
                dy=dy,
                planar=planar,
                position=apply_correction(to_geo(planar), correction),
                height_m=height,
                estimated_margin_m=margin,
                classification=classification,
                is_center=(dx == 0 and dy == 0),
            )
            points.append(point)
            if on_point is not None:
                on_point(point)

        heatmap = Heatmap(
            run_id=run_id,
            baseline_margin_m=baseline_margin_m,
            points=tuple(points),
            center_height_m=center_height,
            center_fallback_used=fallback_used,
            correction=correction,
        )
        logger.info(
            "Run %d: heatmap of %d points (%d missing)",
            run_id,
            len(points),
            heatmap.missing_count(),
        )
        return heatmap

    def _center_height(
        self, heights: list[float | None], center_index: int, run_id: int
    ) -> tuple[float | None, bool]:
        center = heights[center_index]
        if center is not None:
            return center, False
        if self.config.center_fallback is CenterFallback.NONE:
            logger.warning("Run %d: center height missing, heatmap unclassified", run_id)
            return None, False
        fallback = next((h for h in heights if h is not None), None)
        if fallback is None:
            logger.warning("Run %d: every height lookup failed", run_id)
            return None, False
        logger.info(
            "Run %d: center height missing, using first fetched height %.1f m",
            run_id,
            fallback,
        )
        return fallback, True

    @staticmethod
    def _ensure_current(run_id: int, current_run: Callable[[], int] | None) -> None:
        if current_run is None:
            return
        current = current_run()
        if current != run_id:
            raise StaleRunError(run_id, current)
