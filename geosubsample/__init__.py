"""Spatially standardised subsampling of occurrence data.

Three samplers draw replicate subsamples that hold spatial extent constant
(``cookies`` within a radius, ``clustr`` within a spanning tree length,
``bandit`` within latitude bands); ``uniqify`` removes duplicate taxon
occurrences and ``sdsumry`` summarises the spatial and taxonomic content of
each subsample.
"""

from .abstractions.types import (
    CoordinateSystem, SiteCoordinates, OccurrenceRecord, Site, OccurrenceDataset,
    OutputMode, Subsample, Omitted, SubsampleCollection,
    QuotaType, FrequencyType, RarefactionEstimate, DiversitySummary
)
from .config import Config, ProcessingConfig
from .diversity import ChaoRarefactionEstimator, DiversitySummarizer, sdsumry, summaries_to_frame
from .exceptions import (
    GeoSubsampleError, DegenerateInputError, InsufficientPoolError,
    InfeasibleRarefactionError, InvalidConfigurationError
)
from .foundations import RandomStream
from .sampling import (
    RadialSampler, ClusterSampler, BandSampler,
    cookies, clustr, bandit, dedupe, uniqify
)
from .spatial import DistanceMetric, GeometryKernel, SiteWeighter, WeightingScheme

__version__ = '0.1.0'

__all__ = [
    'CoordinateSystem', 'SiteCoordinates', 'OccurrenceRecord', 'Site', 'OccurrenceDataset',
    'OutputMode', 'Subsample', 'Omitted', 'SubsampleCollection',
    'QuotaType', 'FrequencyType', 'RarefactionEstimate', 'DiversitySummary',
    'Config', 'ProcessingConfig',
    'ChaoRarefactionEstimator', 'DiversitySummarizer', 'sdsumry', 'summaries_to_frame',
    'GeoSubsampleError', 'DegenerateInputError', 'InsufficientPoolError',
    'InfeasibleRarefactionError', 'InvalidConfigurationError',
    'RandomStream',
    'RadialSampler', 'ClusterSampler', 'BandSampler',
    'cookies', 'clustr', 'bandit', 'dedupe', 'uniqify',
    'DistanceMetric', 'GeometryKernel', 'SiteWeighter', 'WeightingScheme',
]
