"""Terrain Bounded Context - Value Objects.

Immutable data structures for link endpoints, elevation profiles and DEM
grids. All validation occurs at construction time via Pydantic.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from domain.geodesy.value_objects import GeoPoint


# ---------------------------------------------------------------------------
# Link endpoints
# ---------------------------------------------------------------------------
class LinkEndpoint(BaseModel):
    """Tx or Rx antenna mount (Value Object).

    A blank or missing height is read as 0 m above ground, matching how field
    forms leave the field empty for ground-level antennas.
    """

    position: GeoPoint
    height_m: float = Field(default=0.0, ge=0)

    model_config = ConfigDict(frozen=True)

    @field_validator("height_m", mode="before")
    @classmethod
    def blank_height_is_ground(cls, value: object) -> object:
        if value is None or (isinstance(value, str) and not value.strip()):
            return 0.0
        return value


# ---------------------------------------------------------------------------
# Raw elevation profile (service output)
# ---------------------------------------------------------------------------
class ElevationSample(BaseModel):
    """Terrain elevation at a cumulative distance along the Tx-Rx path."""

    distance_m: float = Field(ge=0)
    elevation_m: float

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Analyzed profile
# ---------------------------------------------------------------------------
class ProfileSample(BaseModel):
    """One analyzed point along the path (Value Object).

    margin_m is terrain minus the 60% Fresnel boundary: positive means the
    terrain intrudes into the clearance zone at this point.
    """

    distance_km: float = Field(ge=0)
    terrain_m: float
    los_m: float
    fresnel_boundary_m: float
    margin_m: float

    model_config = ConfigDict(frozen=True)


class PathProfile(BaseModel):
    """Result of one obstruction analysis (Value Object).

    Created fresh per analysis and never mutated; a new analysis replaces the
    previous profile entirely.

    Invariants:
        samples is non-empty
        total_distance_km > 0
        is_obstructed == (margin_m < 0)
        worst_index points into samples

    Fields:
        margin_m: Clearance at the worst point; positive means metres of
            clearance below the 60% Fresnel boundary, negative means the
            depth by which terrain penetrates it.
    """

    samples: tuple[ProfileSample, ...]
    total_distance_km: float = Field(gt=0)
    frequency_ghz: float = Field(gt=0)
    margin_m: float
    is_obstructed: bool
    fspl_db: float
    worst_index: int = Field(ge=0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_profile(self) -> "PathProfile":
        if not self.samples:
            raise ValueError("Profile must have at least one sample")
        if self.worst_index >= len(self.samples):
            raise ValueError(
                f"worst_index {self.worst_index} out of range for "
                f"{len(self.samples)} samples"
            )
        if self.is_obstructed != (self.margin_m < 0):
            raise ValueError(
                f"is_obstructed={self.is_obstructed} inconsistent with "
                f"margin_m={self.margin_m}"
            )
        return self

    @property
    def worst_sample(self) -> ProfileSample:
        return self.samples[self.worst_index]

    def distances_km(self) -> tuple[float, ...]:
        """Return sample distances (chart x axis)."""
        return tuple(s.distance_km for s in self.samples)

    def terrain(self) -> tuple[float, ...]:
        return tuple(s.terrain_m for s in self.samples)

    def los(self) -> tuple[float, ...]:
        return tuple(s.los_m for s in self.samples)

    def fresnel_boundary(self) -> tuple[float, ...]:
        return tuple(s.fresnel_boundary_m for s in self.samples)


# ---------------------------------------------------------------------------
# DEM grid (offline elevation source)
# ---------------------------------------------------------------------------
class BoundingBox(BaseModel):
    """Geographic extent in EPSG:4326 (Value Object)."""

    min_x: float  # Western boundary (longitude)
    min_y: float  # Southern boundary (latitude)
    max_x: float  # Eastern boundary (longitude)
    max_y: float  # Northern boundary (latitude)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_bounds(self) -> "BoundingBox":
        for name in ("min_x", "max_x"):
            value = getattr(self, name)
            if not (-180 <= value <= 180):
                raise ValueError(f"{name} longitude out of range: {value}")
        for name in ("min_y", "max_y"):
            value = getattr(self, name)
            if not (-90 <= value <= 90):
                raise ValueError(f"{name} latitude out of range: {value}")
        if not (self.min_x < self.max_x):
            raise ValueError(
                f"Invalid x ordering: min_x={self.min_x} >= max_x={self.max_x}"
            )
        if not (self.min_y < self.max_y):
            raise ValueError(
                f"Invalid y ordering: min_y={self.min_y} >= max_y={self.max_y}"
            )
        return self

    def contains(self, point: GeoPoint) -> bool:
        """Inclusive containment test."""
        return (
            self.min_x <= point.longitude <= self.max_x
            and self.min_y <= point.latitude <= self.max_y
        )


class TerrainGrid(BaseModel):
    """Immutable elevation grid with geographic metadata (Value Object).

    The data array is copied and frozen at construction; writing to it
    raises ValueError. NoData cells are NaN.
    """

    data: NDArray[np.float32]  # 2D array (height x width), row 0 = north edge
    bounds: BoundingBox
    resolution: tuple[float, float]  # (x_res, y_res) in degrees, positive
    source_crs: str | None = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @model_validator(mode="after")
    def validate_grid(self) -> "TerrainGrid":
        if self.data.ndim != 2:
            raise ValueError(f"Data must be 2D, got {self.data.ndim}D")
        if self.data.shape[0] == 0 or self.data.shape[1] == 0:
            raise ValueError(f"Data cannot be empty: {self.data.shape}")
        if self.resolution[0] <= 0 or self.resolution[1] <= 0:
            raise ValueError(f"Resolution must be positive: {self.resolution}")
        if np.isnan(self.data).all():
            raise ValueError("Grid contains 100% NoData")

        # Owned, contiguous float32 copy; never flips flags on the caller's array
        immutable = np.array(self.data, dtype=np.float32, copy=True, order="C")
        immutable.flags.writeable = False
        object.__setattr__(self, "data", immutable)
        return self

    def nodata_ratio(self) -> float:
        """Fraction of NaN cells (0.0 to 1.0)."""
        return float(np.isnan(self.data).mean())
