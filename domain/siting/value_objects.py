"""Siting Bounded Context - Value Objects.

Immutable data structures describing a receiver sensitivity heatmap.
All validation occurs at construction time via Pydantic.
"""

from __future__ import annotations

from collections import Counter
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from domain.geodesy.value_objects import GeoPoint, PlanarPoint

# Floating-point slack when checking that radius is a multiple of step
_GRID_TOLERANCE = 1e-9


class Classification(str, Enum):
    """Clearance class of a relocated receiver position."""

    CLEAR = "clear"
    MARGINAL = "marginal"
    OBSTRUCTED = "obstructed"


class CenterFallback(str, Enum):
    """What to use as center height when the center lookup fails.

    FIRST_SUCCESS: height of the first successfully fetched point in
        row-major order. Cheap but biased toward the grid's first row.
    NONE: leave every point unclassified.
    """

    FIRST_SUCCESS = "first_success"
    NONE = "none"


class HeatmapConfig(BaseModel):
    """Grid geometry and classification thresholds (Value Object).

    Offsets run from -radius_m to +radius_m in steps of step_m on both axes,
    so the grid has ((2 * radius / step) + 1) ** 2 points.
    """

    radius_m: float = Field(default=30.0, ge=0)
    step_m: float = Field(default=30.0, gt=0)
    clear_threshold_m: float = 2.0
    obstructed_threshold_m: float = 0.0
    center_fallback: CenterFallback = CenterFallback.FIRST_SUCCESS

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_grid(self) -> "HeatmapConfig":
        ratio = self.radius_m / self.step_m
        if abs(ratio - round(ratio)) > _GRID_TOLERANCE:
            raise ValueError(
                f"radius_m ({self.radius_m}) must be a multiple of step_m ({self.step_m})"
            )
        if self.obstructed_threshold_m > self.clear_threshold_m:
            raise ValueError(
                "obstructed_threshold_m must not exceed clear_threshold_m"
            )
        return self

    @property
    def points_per_side(self) -> int:
        return 2 * round(self.radius_m / self.step_m) + 1


class HeatmapPoint(BaseModel):
    """One candidate receiver position (Value Object).

    height_m is None when the elevation lookup failed; such a point carries
    no estimate and no classification.
    """

    dx: float
    dy: float
    planar: PlanarPoint
    position: GeoPoint
    height_m: float | None = None
    estimated_margin_m: float | None = None
    classification: Classification | None = None
    is_center: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def is_missing(self) -> bool:
        return self.height_m is None


class Heatmap(BaseModel):
    """Complete result of one sampling run (Value Object).

    Replaces the previous heatmap as a whole; never updated point by point.

    Invariants:
        exactly one point has is_center=True, at offset (0, 0)
    """

    run_id: int
    baseline_margin_m: float
    points: tuple[HeatmapPoint, ...]  # row-major: dy outer, dx inner
    center_height_m: float | None
    center_fallback_used: bool = False
    correction: tuple[float, float] = (0.0, 0.0)  # (dlat, dlon) applied to points

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_center(self) -> "Heatmap":
        centers = [p for p in self.points if p.is_center]
        if len(centers) != 1:
            raise ValueError(f"Heatmap must have exactly one center, got {len(centers)}")
        if centers[0].dx != 0 or centers[0].dy != 0:
            raise ValueError("Center point must sit at offset (0, 0)")
        return self

    @property
    def center(self) -> HeatmapPoint:
        return next(p for p in self.points if p.is_center)

    def missing_count(self) -> int:
        """Return number of points whose elevation lookup failed."""
        return sum(1 for p in self.points if p.is_missing)

    def classification_counts(self) -> dict[Classification, int]:
        counts = Counter(p.classification for p in self.points if p.classification)
        return {c: counts.get(c, 0) for c in Classification}
