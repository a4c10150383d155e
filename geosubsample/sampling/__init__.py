"""Spatial subsampling strategies and record deduplication."""

from .base_sampler import BaseSampler, DrawPlan, run_iterations
from .radial import RadialSampler, cookies
from .cluster import ClusterSampler, clustr, grow_cluster
from .band import BandSampler, LatitudeBand, bandit, latitude_bands, assign_bands
from .dedupe import dedupe, uniqify

__all__ = [
    'BaseSampler',
    'DrawPlan',
    'run_iterations',
    'RadialSampler',
    'cookies',
    'ClusterSampler',
    'clustr',
    'grow_cluster',
    'BandSampler',
    'LatitudeBand',
    'bandit',
    'latitude_bands',
    'assign_bands',
    'dedupe',
    'uniqify',
]
