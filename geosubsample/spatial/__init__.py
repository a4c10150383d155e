"""Spatial primitives: distances, spanning trees, centroids and site weighting."""

from .geometry import (
    GeometryKernel, DistanceMetric, SpanningTree, EARTH_RADIUS_KM,
    haversine_km, prim_spanning_tree, as_points, n_distinct
)
from .weighting import SiteWeighter, WeightingScheme

__all__ = [
    'GeometryKernel',
    'DistanceMetric',
    'SpanningTree',
    'EARTH_RADIUS_KM',
    'haversine_km',
    'prim_spanning_tree',
    'as_points',
    'n_distinct',
    'SiteWeighter',
    'WeightingScheme',
]
