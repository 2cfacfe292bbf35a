"""Domain Ports for elevation lookups.

Defines interfaces (Protocols) that infrastructure adapters must implement.
No concrete I/O here. Both ports are async: adapters suspend while their
request waits in the rate-limited fetch queue.
"""

from __future__ import annotations

from typing import Protocol

from domain.geodesy.value_objects import PlanarPoint

from .value_objects import ElevationSample


class ElevationProfileSource(Protocol):
    """Port for sampling terrain along a straight path.

    Implementations: swisstopo profile service, offline DEM.
    """

    async def fetch_profile(
        self, start: PlanarPoint, end: PlanarPoint, n_samples: int
    ) -> list[ElevationSample]:
        """Return samples ordered from start to end.

        Raises:
            ExternalServiceError: If the lookup fails
        """
        ...


class PointElevationSource(Protocol):
    """Port for single-point terrain elevation lookups."""

    async def height_at(self, point: PlanarPoint) -> float:
        """Return terrain elevation in metres at point.

        Raises:
            ExternalServiceError: If the lookup fails
        """
        ...
