"""swisstopo (api3.geo.admin.ch) adapters for the elevation ports.

Implements ElevationProfileSource and PointElevationSource against the
federal geoportal REST services, plus the place search used to relocate
link endpoints. Every request goes through the shared RateLimitedFetchQueue;
nothing here talks to httpx directly.

Services:
- profile.json: LV95 LineString -> [{dist, alts: {COMB, DTM25, DTM2}}, ...]
- height: easting/northing -> {"height": "<metres as string>"}
- SearchServer: free text -> {"results": [{"attrs": {lat, lon, label}}]}
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from pydantic import BaseModel, ConfigDict

from domain.errors import ExternalServiceError
from domain.geodesy.value_objects import GeoPoint, PlanarPoint
from domain.terrain.value_objects import ElevationSample
from infrastructure.fetch.queue import FetchCategory, RateLimitedFetchQueue

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api3.geo.admin.ch/rest/services"
PROFILE_URL = f"{API_BASE_URL}/profile.json"
HEIGHT_URL = f"{API_BASE_URL}/height"
SEARCH_URL = f"{API_BASE_URL}/ech/SearchServer"

LV95_SRID = 2056

# Preferred elevation model first; COMB merges DTM2 and DTM25
_ALTITUDE_MODELS = ("COMB", "DTM2", "DTM25")

_TAG_RE = re.compile(r"<[^>]+>")


def _payload(response: Any, category: FetchCategory) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise ExternalServiceError(
            f"{category.value} response is not JSON",
            category=category.value,
            url=str(response.url),
        ) from e


class SwisstopoElevationService:
    """Profile and point elevation lookups on the swisstopo height model.

    Parameters
    ----------
    queue: RateLimitedFetchQueue
        Shared queue every request is funnelled through.
    profile_url, height_url: str
        Endpoint overrides (mirrors, test servers).
    """

    def __init__(
        self,
        queue: RateLimitedFetchQueue,
        *,
        profile_url: str = PROFILE_URL,
        height_url: str = HEIGHT_URL,
    ) -> None:
        self.queue = queue
        self.profile_url = profile_url
        self.height_url = height_url

    async def fetch_profile(
        self, start: PlanarPoint, end: PlanarPoint, n_samples: int
    ) -> list[ElevationSample]:
        """Sample terrain along the straight line from start to end.

        Raises:
            ValueError: If n_samples < 2
            ExternalServiceError: Request failed or payload is malformed
        """
        if n_samples < 2:
            raise ValueError(f"n_samples must be >= 2, got {n_samples}")
        geom = {
            "type": "LineString",
            "coordinates": [
                [start.easting, start.northing],
                [end.easting, end.northing],
            ],
        }
        params = {
            "geom": json.dumps(geom),
            "sr": LV95_SRID,
            "nb_points": n_samples,
        }
        response = await self.queue.fetch(
            self.profile_url, FetchCategory.PROFILE, params
        )
        payload = _payload(response, FetchCategory.PROFILE)
        try:
            samples = [
                ElevationSample(
                    distance_m=float(row["dist"]),
                    elevation_m=self._altitude(row["alts"]),
                )
                for row in payload
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ExternalServiceError(
                f"Malformed profile payload: {e}",
                category=FetchCategory.PROFILE.value,
                url=self.profile_url,
            ) from e

        logger.debug("Fetched profile with %d samples", len(samples))
        return samples

    async def height_at(self, point: PlanarPoint) -> float:
        """Terrain elevation at an LV95 point.

        Raises:
            ExternalServiceError: Request failed or payload is malformed
        """
        params = {
            "easting": point.easting,
            "northing": point.northing,
            "sr": LV95_SRID,
        }
        response = await self.queue.fetch(self.height_url, FetchCategory.HEIGHT, params)
        payload = _payload(response, FetchCategory.HEIGHT)
        try:
            height = float(payload["height"])
        except (KeyError, TypeError, ValueError) as e:
            raise ExternalServiceError(
                f"Malformed height payload: {payload!r}",
                category=FetchCategory.HEIGHT.value,
                url=self.height_url,
            ) from e
        if not math.isfinite(height):
            raise ExternalServiceError(
                f"Non-finite height {height}",
                category=FetchCategory.HEIGHT.value,
                url=self.height_url,
            )
        return height

    @staticmethod
    def _altitude(alts: dict[str, Any]) -> float:
        for model in _ALTITUDE_MODELS:
            value = alts.get(model)
            if value is not None:
                return float(value)
        raise ValueError(f"No known altitude model in {sorted(alts)}")


# ---------------------------------------------------------------------------
# Place search
# ---------------------------------------------------------------------------
class PlaceCandidate(BaseModel):
    """A search hit that can relocate a link endpoint."""

    position: GeoPoint
    label: str

    model_config = ConfigDict(frozen=True)


class SwisstopoPlaceSearch:
    """Free-text location search (not part of the analysis path)."""

    def __init__(self, queue: RateLimitedFetchQueue, *, url: str = SEARCH_URL) -> None:
        self.queue = queue
        self.url = url

    async def search(self, text: str, limit: int = 10) -> list[PlaceCandidate]:
        """Return up to `limit` candidates; blank text sends no request.

        Raises:
            ExternalServiceError: Request failed or payload is malformed
        """
        text = text.strip()
        if not text:
            return []
        params = {
            "searchText": text,
            "type": "locations",
            "sr": 4326,
            "limit": limit,
        }
        response = await self.queue.fetch(self.url, FetchCategory.SEARCH, params)
        payload = _payload(response, FetchCategory.SEARCH)
        try:
            results = payload["results"]
            candidates = [
                PlaceCandidate(
                    position=GeoPoint(
                        latitude=float(hit["attrs"]["lat"]),
                        longitude=float(hit["attrs"]["lon"]),
                    ),
                    label=_TAG_RE.sub("", hit["attrs"]["label"]).strip(),
                )
                for hit in results
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ExternalServiceError(
                f"Malformed search payload: {e}",
                category=FetchCategory.SEARCH.value,
                url=self.url,
            ) from e
        return candidates[:limit]
