"""Siting Bounded Context.

Responsible for receiver relocation sensitivity:
- Value Objects: HeatmapConfig, HeatmapPoint, Heatmap, Classification
- Services: build_grid_offsets, classify_margin, estimate_margin, HeatmapSampler
"""
