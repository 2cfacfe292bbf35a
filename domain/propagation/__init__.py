"""Propagation Bounded Context.

Responsible for RF propagation physics:
- Services: fresnel_radius_m, free_space_path_loss_db
"""

from domain.propagation.physics import (
    FRESNEL_CLEARANCE_RATIO,
    free_space_path_loss_db,
    fresnel_radius_m,
)

__all__ = ["FRESNEL_CLEARANCE_RATIO", "free_space_path_loss_db", "fresnel_radius_m"]
