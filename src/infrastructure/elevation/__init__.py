"""Infrastructure adapters for the elevation ports.

- SwisstopoElevationService: online profile and point heights (LV95)
- SwisstopoPlaceSearch: free-text location search
- DemElevationService: offline lookups over a GeoTIFF DEM
"""

from .dem import DemElevationService, load_dem
from .swisstopo import PlaceCandidate, SwisstopoElevationService, SwisstopoPlaceSearch

__all__ = [
    "DemElevationService",
    "PlaceCandidate",
    "SwisstopoElevationService",
    "SwisstopoPlaceSearch",
    "load_dem",
]
