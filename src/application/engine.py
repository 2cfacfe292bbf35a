"""Link analysis engine.

Runs one analysis round in two strictly sequential phases:

1) Profile: fetch the Tx-Rx elevation profile and run the 60% Fresnel
   obstruction analysis to completion.
2) Heatmap: seed the sampler with the profile margin and sample the grid
   around the receiver, one lookup at a time.

Every round gets a monotonically increasing run id. Before publishing
anything (profile or heatmap) a round checks that its id is still current;
a superseded round raises StaleRunError to its own caller and publishes
nothing more. This keeps at most one round live and stops overlapping
rounds from writing to the same result surface.

Failure policy:
- Profile fetch failure: raised to the caller; previous results stay.
- Invalid profile: raised to the caller; previous results stay.
- Height lookup failure: absorbed by the sampler (point left unclassified).
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field

from application.settings import EngineSettings
from domain.errors import ExternalServiceError, InvalidInputError, StaleRunError
from domain.geodesy.transform import round_trip_residual_m, to_planar
from domain.siting.services import HeatmapSampler, PointCallback
from domain.siting.value_objects import Heatmap, HeatmapPoint
from domain.terrain.repositories import ElevationProfileSource, PointElevationSource
from domain.terrain.services import analyze_profile
from domain.terrain.value_objects import LinkEndpoint, PathProfile

logger = logging.getLogger(__name__)


class AnalysisRequest(BaseModel):
    """Inputs of one analysis round."""

    tx: LinkEndpoint
    rx: LinkEndpoint
    frequency_ghz: float = Field(gt=0)

    model_config = ConfigDict(frozen=True)


class AnalysisResult(BaseModel):
    """Everything one completed round produced."""

    run_id: int
    request: AnalysisRequest
    profile: PathProfile
    heatmap: Heatmap

    model_config = ConfigDict(frozen=True)


class LinkAnalysisEngine:
    """Command-driven facade over profile analysis and heatmap sampling.

    Parameters
    ----------
    profiles: ElevationProfileSource
        Port used for the Tx-Rx terrain profile.
    heights: PointElevationSource
        Port used for heatmap point elevations.
    settings: EngineSettings | None
        Sample count and heatmap geometry.
    on_profile: callable, optional
        Called with each published PathProfile (chart surface).
    on_heatmap_point: callable, optional
        Called with each heatmap point of the current round, in row-major
        order (map surface).
    """

    def __init__(
        self,
        profiles: ElevationProfileSource,
        heights: PointElevationSource,
        settings: EngineSettings | None = None,
        *,
        on_profile: Callable[[PathProfile], None] | None = None,
        on_heatmap_point: PointCallback | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.profiles = profiles
        self.sampler = HeatmapSampler(heights, self.settings.heatmap)
        self.on_profile = on_profile
        self.on_heatmap_point = on_heatmap_point

        self._run_id = 0
        self._profile: PathProfile | None = None
        self._profile_run_id: int | None = None
        self._heatmap: Heatmap | None = None
        self._last_request: AnalysisRequest | None = None

    # -----------------------------------------------------------------------
    # Published state
    # -----------------------------------------------------------------------
    @property
    def current_run_id(self) -> int:
        return self._run_id

    @property
    def profile(self) -> PathProfile | None:
        return self._profile

    @property
    def profile_run_id(self) -> int | None:
        """Run that produced the published profile.

        Compare with heatmap.run_id: after a round goes stale during its
        heatmap phase the profile is newer than the heatmap.
        """
        return self._profile_run_id

    @property
    def heatmap(self) -> Heatmap | None:
        return self._heatmap

    @property
    def last_request(self) -> AnalysisRequest | None:
        """Request behind the published profile."""
        return self._last_request

    # -----------------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------------
    def invalidate(self) -> int:
        """Supersede any in-flight round (e.g. an endpoint is being dragged).

        Published results stay visible until the next round replaces them.

        Returns:
            The new current run id
        """
        self._run_id += 1
        logger.debug("Invalidated; current run is now %d", self._run_id)
        return self._run_id

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """Run both phases for request and publish the results.

        Raises:
            ExternalServiceError: Profile lookup failed
            InvalidInputError: Profile cannot be analyzed
            StaleRunError: A newer round started before this one finished
        """
        run_id = self.invalidate()
        tx_planar = to_planar(request.tx.position)
        rx_planar = to_planar(request.rx.position)
        logger.info(
            "Run %d: %.3f GHz, Tx h=%.1f m, Rx h=%.1f m",
            run_id,
            request.frequency_ghz,
            request.tx.height_m,
            request.rx.height_m,
        )

        # Phase 1: profile
        try:
            samples = await self.profiles.fetch_profile(
                tx_planar, rx_planar, self.settings.profile_samples
            )
        except ExternalServiceError as e:
            logger.error("Run %d: profile fetch failed: %s", run_id, e)
            raise
        self._ensure_current(run_id)

        try:
            profile = analyze_profile(
                samples,
                request.tx.height_m,
                request.rx.height_m,
                request.frequency_ghz,
            )
        except InvalidInputError as e:
            # Previous profile and heatmap are retained
            logger.error("Run %d: profile rejected: %s", run_id, e)
            raise
        self._profile = profile
        self._profile_run_id = run_id
        self._last_request = request
        if self.on_profile is not None:
            self.on_profile(profile)

        # Phase 2: heatmap, seeded with the finished profile margin
        logger.debug(
            "Run %d: receiver round-trip residual %.3f m",
            run_id,
            round_trip_residual_m(request.rx.position),
        )
        heatmap = await self.sampler.sample(
            rx_planar,
            request.rx.position,
            profile.margin_m,
            run_id=run_id,
            current_run=lambda: self._run_id,
            on_point=self.on_heatmap_point,
        )
        self._ensure_current(run_id)
        self._heatmap = heatmap

        return AnalysisResult(
            run_id=run_id, request=request, profile=profile, heatmap=heatmap
        )

    async def select_heatmap_point(self, point: HeatmapPoint) -> AnalysisResult | None:
        """Relocate the receiver to a heatmap point and analyze again.

        Selecting the center point changes nothing and returns None.

        Raises:
            InvalidInputError: If no analysis has been requested yet
        """
        if point.is_center:
            return None
        if self._last_request is None:
            raise InvalidInputError("No analysis to relocate the receiver for")
        rx = LinkEndpoint(
            position=point.position, height_m=self._last_request.rx.height_m
        )
        logger.info(
            "Relocating receiver by (%g, %g) m to (%.6f, %.6f)",
            point.dx,
            point.dy,
            point.position.latitude,
            point.position.longitude,
        )
        return await self.analyze(self._last_request.model_copy(update={"rx": rx}))

    def _ensure_current(self, run_id: int) -> None:
        if run_id != self._run_id:
            logger.debug("Run %d: discarded, run %d is current", run_id, self._run_id)
            raise StaleRunError(run_id, self._run_id)
