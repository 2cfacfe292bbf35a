"""Propagation Bounded Context - Physics.

Closed-form first Fresnel zone radius and free-space path loss (ITU-R P.525)
in the practical units used by field planners: kilometres, GHz, metres, dB.
"""

from __future__ import annotations

import math

# Fraction of the first Fresnel zone that must be free of terrain
FRESNEL_CLEARANCE_RATIO = 0.6

# sqrt(300): wavelength 0.3/f metres times 1000 m per km
_FRESNEL_FACTOR = 17.32

# 20*log10(4*pi/c) with distance in km and frequency in GHz
_FSPL_CONSTANT_DB = 92.45


def fresnel_radius_m(d1_km: float, total_km: float, freq_ghz: float) -> float:
    """First Fresnel zone radius at distance d1 from one end of the path.

    Endpoints need no clearance, so the radius is 0 at d1 <= 0 and at
    d1 >= total_km. A non-positive frequency also yields 0.

    Args:
        d1_km: Distance from the transmitter in km
        total_km: Total path length in km
        freq_ghz: Operating frequency in GHz

    Returns:
        Radius in metres
    """
    if freq_ghz <= 0 or d1_km <= 0 or d1_km >= total_km:
        return 0.0
    d2_km = total_km - d1_km
    return _FRESNEL_FACTOR * math.sqrt(d1_km * d2_km / (total_km * freq_ghz))


def free_space_path_loss_db(distance_km: float, freq_ghz: float) -> float:
    """Free-space path loss in dB; 0 for a non-positive distance.

    Raises:
        ValueError: If freq_ghz is not positive (log undefined)
    """
    if distance_km <= 0:
        return 0.0
    if freq_ghz <= 0:
        raise ValueError("freq_ghz must be positive")
    return (
        _FSPL_CONSTANT_DB + 20 * math.log10(distance_km) + 20 * math.log10(freq_ghz)
    )
