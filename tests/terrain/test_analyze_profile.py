"""Tests for the analyze_profile domain service.

All profiles are built directly from ElevationSample lists; domain tests do
not touch any elevation service.
"""

from __future__ import annotations

import pytest

from domain.errors import InvalidInputError
from domain.propagation import physics
from domain.propagation.physics import free_space_path_loss_db, fresnel_radius_m
from domain.terrain.errors import InvalidProfileError
from domain.terrain.services import analyze_profile
from domain.terrain.value_objects import ElevationSample, LinkEndpoint
from tests.conftest_utils import TX_POINT, flat_samples


def _with_elevation(samples, index, elevation):
    out = list(samples)
    out[index] = ElevationSample(distance_m=samples[index].distance_m, elevation_m=elevation)
    return out


# ===========================================================================
# Flat terrain, clear link (30 m Tx, 10 m Rx, 5.8 GHz, 10 samples over 5 km)
# ===========================================================================
def test_flat_terrain_link_is_clear():
    profile = analyze_profile(flat_samples(), 30.0, 10.0, 5.8)

    assert profile.is_obstructed is False
    assert profile.margin_m > 0
    assert profile.total_distance_km == pytest.approx(5.0)
    assert len(profile.samples) == 10


def test_flat_terrain_geometry_per_sample():
    profile = analyze_profile(flat_samples(elevation_m=500.0), 30.0, 10.0, 5.8)

    first, last = profile.samples[0], profile.samples[-1]
    assert first.los_m == pytest.approx(530.0)
    assert last.los_m == pytest.approx(510.0)
    # No Fresnel clearance is required at the endpoints
    assert first.fresnel_boundary_m == pytest.approx(first.los_m)
    assert last.fresnel_boundary_m == pytest.approx(last.los_m)
    for s in profile.samples:
        expected_boundary = s.los_m - 0.6 * fresnel_radius_m(s.distance_km, 5.0, 5.8)
        assert s.fresnel_boundary_m == pytest.approx(expected_boundary)
        assert s.margin_m == pytest.approx(s.terrain_m - s.fresnel_boundary_m)


def test_boundary_follows_propagation_fresnel_radius(monkeypatch):
    """The analyzer takes its Fresnel radius from domain.propagation.physics."""
    samples = flat_samples(elevation_m=500.0)
    before = analyze_profile(samples, 30.0, 10.0, 5.8)

    monkeypatch.setattr(physics, "_FRESNEL_FACTOR", 2 * physics._FRESNEL_FACTOR)
    after = analyze_profile(samples, 30.0, 10.0, 5.8)

    for old, new in zip(before.samples, after.samples):
        expected = new.los_m - 0.6 * physics.fresnel_radius_m(new.distance_km, 5.0, 5.8)
        assert new.fresnel_boundary_m == pytest.approx(expected)
        depth = old.los_m - old.fresnel_boundary_m
        assert new.los_m - new.fresnel_boundary_m == pytest.approx(2 * depth)


def test_equal_antenna_heights_give_constant_los():
    profile = analyze_profile(flat_samples(elevation_m=800.0), 15.0, 15.0, 2.4)

    assert all(s.los_m == pytest.approx(815.0) for s in profile.samples)


def test_flat_terrain_obstruction_depends_only_on_fresnel_boundary():
    """Equal heights: obstructed iff terrain rises above los - 0.6 * r."""
    samples = flat_samples(n=11, total_m=10_000.0, elevation_m=0.0)
    mid = 5
    radius = fresnel_radius_m(5.0, 10.0, 2.4)
    boundary = 30.0 - 0.6 * radius

    below = analyze_profile(
        _with_elevation(samples, mid, boundary - 0.01), 30.0, 30.0, 2.4
    )
    above = analyze_profile(
        _with_elevation(samples, mid, boundary + 0.01), 30.0, 30.0, 2.4
    )

    assert below.is_obstructed is False
    assert above.is_obstructed is True


# ===========================================================================
# Single intrusion 50 m above the local Fresnel boundary
# ===========================================================================
def test_mid_path_intrusion_reports_penetration_depth():
    samples = flat_samples(elevation_m=500.0)
    clear = analyze_profile(samples, 30.0, 10.0, 5.8)
    mid = 4
    raised = clear.samples[mid].fresnel_boundary_m + 50.0

    profile = analyze_profile(_with_elevation(samples, mid, raised), 30.0, 10.0, 5.8)

    assert profile.is_obstructed is True
    assert profile.margin_m == pytest.approx(-50.0)
    assert profile.worst_index == mid


# ===========================================================================
# Margin / obstruction relationship
# ===========================================================================
@pytest.mark.parametrize("bump", [-20.0, -1.0, 0.5, 12.0, 75.0])
def test_reported_margin_is_negated_max_sample_margin(bump):
    samples = _with_elevation(flat_samples(elevation_m=300.0), 6, 300.0 + 20.0 + bump)

    profile = analyze_profile(samples, 30.0, 10.0, 5.8)

    max_margin = max(s.margin_m for s in profile.samples)
    assert profile.margin_m == pytest.approx(-max_margin)
    assert profile.is_obstructed == any(s.margin_m > 0 for s in profile.samples)
    assert profile.worst_sample.margin_m == pytest.approx(max_margin)


def test_fspl_uses_total_distance():
    profile = analyze_profile(flat_samples(total_m=12_000.0), 20.0, 20.0, 11.0)

    assert profile.fspl_db == pytest.approx(free_space_path_loss_db(12.0, 11.0))


def test_analysis_is_deterministic():
    samples = _with_elevation(flat_samples(), 3, 540.0)

    first = analyze_profile(samples, 30.0, 10.0, 5.8)
    second = analyze_profile(samples, 30.0, 10.0, 5.8)

    assert first == second


def test_chart_series_accessors():
    profile = analyze_profile(flat_samples(n=4, total_m=3000.0), 10.0, 10.0, 5.8)

    assert profile.distances_km() == pytest.approx((0.0, 1.0, 2.0, 3.0))
    assert len(profile.terrain()) == len(profile.los()) == len(profile.fresnel_boundary()) == 4


def test_profile_is_immutable():
    profile = analyze_profile(flat_samples(), 30.0, 10.0, 5.8)

    with pytest.raises(Exception):  # ValidationError
        profile.margin_m = 0


# ===========================================================================
# Invalid input
# ===========================================================================
def test_empty_profile_rejected():
    with pytest.raises(InvalidProfileError, match="no samples"):
        analyze_profile([], 10.0, 10.0, 5.8)


def test_zero_total_distance_rejected():
    samples = [ElevationSample(distance_m=0.0, elevation_m=100.0)]

    with pytest.raises(InvalidProfileError, match="Total distance"):
        analyze_profile(samples, 10.0, 10.0, 5.8)


def test_non_positive_frequency_rejected():
    with pytest.raises(InvalidProfileError, match="Frequency"):
        analyze_profile(flat_samples(), 10.0, 10.0, 0.0)


def test_decreasing_distances_rejected():
    samples = [
        ElevationSample(distance_m=0.0, elevation_m=1.0),
        ElevationSample(distance_m=200.0, elevation_m=1.0),
        ElevationSample(distance_m=100.0, elevation_m=1.0),
    ]

    with pytest.raises(InvalidProfileError, match="non-decreasing"):
        analyze_profile(samples, 10.0, 10.0, 5.8)


def test_non_finite_elevation_rejected():
    samples = _with_elevation(flat_samples(), 2, float("nan"))

    with pytest.raises(InvalidProfileError, match="non-finite"):
        analyze_profile(samples, 10.0, 10.0, 5.8)


def test_negative_height_rejected():
    with pytest.raises(InvalidProfileError):
        analyze_profile(flat_samples(), -1.0, 10.0, 5.8)


def test_invalid_profile_is_invalid_input_and_value_error():
    with pytest.raises(InvalidInputError):
        analyze_profile([], 10.0, 10.0, 5.8)
    with pytest.raises(ValueError):
        analyze_profile([], 10.0, 10.0, 5.8)


# ===========================================================================
# Link endpoints
# ===========================================================================
@pytest.mark.parametrize("blank", [None, "", "   "])
def test_blank_endpoint_height_defaults_to_ground(blank):
    endpoint = LinkEndpoint(position=TX_POINT, height_m=blank)

    assert endpoint.height_m == 0.0


def test_endpoint_height_defaults_to_ground_when_absent():
    assert LinkEndpoint(position=TX_POINT).height_m == 0.0


def test_endpoint_rejects_negative_height():
    with pytest.raises(ValueError):
        LinkEndpoint(position=TX_POINT, height_m=-2.0)
