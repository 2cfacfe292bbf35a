"""Offline elevation source backed by a GeoTIFF DEM.

Implements both elevation ports (profile and point height) over a
TerrainGrid held in memory, for field use without network access. The
loader normalizes any single-band GeoTIFF to EPSG:4326 with rasterio.

Loading lifecycle:
1) Validate path (exists, .tif/.tiff, not a symlink, not empty)
2) Open dataset inside rasterio.Env
3) Reject multi-band or CRS-less rasters
4) Reproject to EPSG:4326 if needed (bilinear)
5) Convert nodata -> NaN as float32 and build the TerrainGrid
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import rasterio
from affine import Affine
from rasterio.crs import CRS
from rasterio.enums import Resampling
from rasterio.errors import RasterioError
from rasterio.transform import array_bounds
from rasterio.warp import calculate_default_transform, reproject

from domain.errors import ExternalServiceError
from domain.geodesy.transform import to_geo
from domain.geodesy.value_objects import PlanarPoint
from domain.terrain.errors import (
    AllNoDataError,
    InvalidRasterError,
    MissingCRSError,
    PointOutOfBoundsError,
)
from domain.terrain.services import bilinear_interpolate
from domain.terrain.value_objects import BoundingBox, ElevationSample, TerrainGrid

logger = logging.getLogger(__name__)

_TARGET_CRS = CRS.from_epsg(4326)

# Warn when most of the raster is NoData
_NODATA_WARN_RATIO = 0.8


def load_dem(file_path: Path | str) -> TerrainGrid:
    """Load a DEM from GeoTIFF and return it as an EPSG:4326 TerrainGrid.

    Raises:
        FileNotFoundError: If the file does not exist
        InvalidRasterError: Wrong extension, symlink, empty, multi-band or
            unreadable raster
        MissingCRSError: Raster has no CRS
        AllNoDataError: Every pixel is NoData
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(str(path))
    if path.suffix.lower() not in (".tif", ".tiff"):
        raise InvalidRasterError(f"Unsupported file extension: {path.suffix}")
    if path.is_symlink():
        raise InvalidRasterError("Symlinks are not permitted")
    if path.stat().st_size == 0:
        raise InvalidRasterError("Empty file")

    try:
        with rasterio.Env():
            with rasterio.open(path) as src:
                if src.count != 1:
                    raise InvalidRasterError(f"Expected 1 band, got {src.count}")
                if src.crs is None:
                    raise MissingCRSError("Raster has no CRS defined")
                source_crs = src.crs.to_string()

                if src.crs == _TARGET_CRS:
                    data = src.read(1, masked=True, out_dtype="float32")
                    data = np.ma.filled(data.astype(np.float32), np.float32(np.nan))
                    transform: Affine = src.transform
                else:
                    transform, width, height = calculate_default_transform(
                        src.crs, _TARGET_CRS, src.width, src.height, *src.bounds
                    )
                    data = np.full((height, width), np.nan, dtype=np.float32)
                    reproject(
                        source=rasterio.band(src, 1),
                        destination=data,
                        src_transform=src.transform,
                        src_crs=src.crs,
                        dst_transform=transform,
                        dst_crs=_TARGET_CRS,
                        resampling=Resampling.bilinear,
                        src_nodata=src.nodata,
                        dst_nodata=np.nan,
                    )
                    logger.info(
                        "DEM %s: Reprojected from %s to EPSG:4326",
                        path.name,
                        source_crs,
                    )
    except RasterioError as e:
        raise InvalidRasterError(f"Corrupted or invalid raster: {e}") from e

    if np.isnan(data).all():
        raise AllNoDataError("Raster contains 100% NoData pixels - unusable")

    minx, miny, maxx, maxy = array_bounds(data.shape[0], data.shape[1], transform)
    grid = TerrainGrid(
        data=data,
        bounds=BoundingBox(min_x=minx, min_y=miny, max_x=maxx, max_y=maxy),
        resolution=(abs(transform.a), abs(transform.e)),
        source_crs=source_crs,
    )

    # Log only the file name, never the full path
    if grid.nodata_ratio() > _NODATA_WARN_RATIO:
        logger.warning(
            "DEM %s: %.1f%% NoData pixels detected",
            path.name,
            grid.nodata_ratio() * 100.0,
        )
    logger.debug("DEM %s: Loaded %dx%d grid", path.name, data.shape[1], data.shape[0])
    return grid


class DemElevationService:
    """Elevation ports served from an in-memory TerrainGrid.

    Lookups outside the grid or on NoData cells fail with
    ExternalServiceError, exactly like a failed network lookup.
    """

    def __init__(self, grid: TerrainGrid) -> None:
        self.grid = grid

    @classmethod
    def from_file(cls, file_path: Path | str) -> "DemElevationService":
        return cls(load_dem(file_path))

    async def height_at(self, point: PlanarPoint) -> float:
        return self._lookup(point, "height")

    async def fetch_profile(
        self, start: PlanarPoint, end: PlanarPoint, n_samples: int
    ) -> list[ElevationSample]:
        """Sample n_samples evenly spaced points on the planar straight line."""
        if n_samples < 2:
            raise ValueError(f"n_samples must be >= 2, got {n_samples}")
        de = end.easting - start.easting
        dn = end.northing - start.northing
        length = float(np.hypot(de, dn))

        samples = []
        for t in np.linspace(0.0, 1.0, n_samples):
            point = start.offset(float(t) * de, float(t) * dn)
            samples.append(
                ElevationSample(
                    distance_m=float(t) * length,
                    elevation_m=self._lookup(point, "profile"),
                )
            )
        return samples

    def _lookup(self, point: PlanarPoint, category: str) -> float:
        try:
            elevation, is_nodata = bilinear_interpolate(self.grid, to_geo(point))
        except PointOutOfBoundsError as e:
            raise ExternalServiceError(str(e), category=category) from e
        if is_nodata:
            raise ExternalServiceError(
                f"No elevation data at E={point.easting:.1f} N={point.northing:.1f}",
                category=category,
            )
        return elevation
