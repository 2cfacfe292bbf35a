"""Geodesy Bounded Context - Value Objects.

Immutable coordinate types. All validation occurs at construction time via
Pydantic.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GeoPoint(BaseModel):
    """Geographic coordinate in WGS84 (Value Object).

    Invariants:
        latitude in [-90, 90]
        longitude in [-180, 180]

    Pydantic frozen models compare by value, so two GeoPoints built from the
    same coordinates are equal and hash alike.
    """

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

    model_config = ConfigDict(frozen=True)


class PlanarPoint(BaseModel):
    """Projected coordinate in the Swiss LV95 grid (EPSG:2056), metres.

    Used for short-range distance and offset arithmetic. Offsets are plain
    metre deltas on easting/northing.
    """

    easting: float
    northing: float

    model_config = ConfigDict(frozen=True)

    def offset(self, dx: float, dy: float) -> "PlanarPoint":
        """Return a new point shifted by (dx, dy) metres."""
        return PlanarPoint(easting=self.easting + dx, northing=self.northing + dy)
