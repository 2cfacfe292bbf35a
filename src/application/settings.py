"""Engine configuration.

Defaults match the field reference setup; every value can be overridden by
constructing EngineSettings explicitly (or via EngineSettings.model_validate
on a plain mapping, e.g. parsed from a config file).
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from domain.siting.value_objects import HeatmapConfig
from infrastructure.diagnostics import DEFAULT_CAPACITY
from infrastructure.fetch.queue import FOREGROUND_DELAY_S, TILE_DELAY_S

DEFAULT_PROFILE_SAMPLES = 200


class EngineSettings(BaseModel):
    """Tunables of the analysis engine and its request queue."""

    profile_samples: int = Field(default=DEFAULT_PROFILE_SAMPLES, ge=2)
    heatmap: HeatmapConfig = Field(default_factory=HeatmapConfig)
    foreground_delay_s: float = Field(default=FOREGROUND_DELAY_S, ge=0)
    tile_delay_s: float = Field(default=TILE_DELAY_S, ge=0)
    error_log_capacity: int = Field(default=DEFAULT_CAPACITY, ge=1)

    model_config = ConfigDict(frozen=True)
