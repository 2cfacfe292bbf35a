"""Link Planner Domain Layer.

This package contains the core link analysis logic organized by bounded
contexts:
- geodesy: WGS84 <-> Swiss LV95 planar transform and round-trip correction
- propagation: Fresnel zone and free-space path loss formulas
- terrain: Elevation profiles, grids and 60% Fresnel obstruction analysis
- siting: Receiver sensitivity heatmap around a link endpoint
"""

# Imports alphabetized per project style (isort)
from domain import geodesy, propagation, siting, terrain

__all__ = ["geodesy", "propagation", "siting", "terrain"]
