"""Terrain Bounded Context - Error Hierarchy.

Custom exceptions for profile analysis and DEM operations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from domain.errors import InvalidInputError, LinkPlannerError

if TYPE_CHECKING:
    from domain.geodesy.value_objects import GeoPoint
    from domain.terrain.value_objects import BoundingBox


class InvalidProfileError(InvalidInputError):
    """Elevation profile or analysis parameters cannot be analyzed."""


class TerrainError(LinkPlannerError):
    """Base error for DEM operations."""


class InvalidRasterError(TerrainError):
    """File is not a valid raster, wrong format, or corrupted."""


class MissingCRSError(TerrainError):
    """Raster has no CRS defined."""


class AllNoDataError(TerrainError):
    """Raster contains 100% NoData pixels - unusable."""


class PointOutOfBoundsError(TerrainError):
    """Point is outside the terrain grid bounds.

    Attributes:
        point: The offending GeoPoint
        bounds: The grid's BoundingBox
    """

    def __init__(self, point: "GeoPoint", bounds: "BoundingBox") -> None:
        self.point = point
        self.bounds = bounds
        super().__init__(
            f"Point ({point.latitude:.6f}, {point.longitude:.6f}) outside bounds "
            f"[lat: {bounds.min_y:.6f} to {bounds.max_y:.6f}, "
            f"lon: {bounds.min_x:.6f} to {bounds.max_x:.6f}]"
        )
