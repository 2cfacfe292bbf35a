"""Terrain Bounded Context.

Responsible for terrain-aware link clearance:
- Value Objects: LinkEndpoint, ElevationSample, PathProfile, TerrainGrid
- Services: analyze_profile (60% Fresnel obstruction), bilinear_interpolate
- Ports: ElevationProfileSource, PointElevationSource
"""
