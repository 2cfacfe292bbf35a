"""Geodesy Bounded Context.

Responsible for converting between geographic and local planar coordinates:
- Value Objects: GeoPoint, PlanarPoint
- Services: to_planar, to_geo, round_trip_correction, round_trip_residual_m
"""

from domain.geodesy.transform import (
    apply_correction,
    round_trip_correction,
    round_trip_residual_m,
    to_geo,
    to_planar,
)
from domain.geodesy.value_objects import GeoPoint, PlanarPoint

__all__ = [
    "GeoPoint",
    "PlanarPoint",
    "apply_correction",
    "round_trip_correction",
    "round_trip_residual_m",
    "to_geo",
    "to_planar",
]
