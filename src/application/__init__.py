"""Application Layer.

Orchestrates domain services and infrastructure adapters into the link
analysis engine consumed by map, chart and search surfaces.
"""
