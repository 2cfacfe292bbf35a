"""Map tile imagery fetch through the shared request queue.

Tiles are background traffic: they use the short tile delay, and a failed
tile is simply missing from the map.
"""

from __future__ import annotations

import logging

from infrastructure.fetch.queue import FetchCategory, RateLimitedFetchQueue

logger = logging.getLogger(__name__)

# swisstopo national map, Web Mercator tiling
TILE_URL_TEMPLATE = (
    "https://wmts.geo.admin.ch/1.0.0/ch.swisstopo.pixelkarte-farbe/default/"
    "current/3857/{z}/{x}/{y}.jpeg"
)
MAX_ZOOM = 19


class TileFetcher:
    """Fetches raw tile bytes; rendering is left to the map surface."""

    def __init__(
        self, queue: RateLimitedFetchQueue, *, url_template: str = TILE_URL_TEMPLATE
    ) -> None:
        self.queue = queue
        self.url_template = url_template
        self.tiles_fetched = 0

    async def fetch_tile(self, z: int, x: int, y: int) -> bytes:
        """Return the encoded tile image.

        Raises:
            ValueError: If (z, x, y) is not a valid tile address
            ExternalServiceError: If the request fails
        """
        if not 0 <= z <= MAX_ZOOM:
            raise ValueError(f"Zoom out of range: {z}")
        side = 2**z
        if not (0 <= x < side and 0 <= y < side):
            raise ValueError(f"Tile ({x}, {y}) outside zoom {z}")

        url = self.url_template.format(z=z, x=x, y=y)
        response = await self.queue.fetch(url, FetchCategory.TILE)
        self.tiles_fetched += 1
        logger.debug("Tile %d/%d/%d: %d bytes", z, x, y, len(response.content))
        return response.content
