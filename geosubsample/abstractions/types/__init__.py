# geosubsample/abstractions/types/__init__.py
"""Type definitions for the abstractions layer."""

# Occurrence types
from .occurrence_types import (
    CoordinateSystem, SiteCoordinates, OccurrenceRecord, Site, OccurrenceDataset,
    records_to_frame, sites_to_frame
)

# Sampling types
from .sampling_types import (
    OutputMode, Subsample, Omitted, SampleAttempt, SubsampleCollection
)

# Summary types
from .summary_types import (
    QuotaType, FrequencyType, RarefactionEstimate, DiversitySummary
)

__all__ = [
    # Occurrence
    'CoordinateSystem', 'SiteCoordinates', 'OccurrenceRecord', 'Site', 'OccurrenceDataset',
    'records_to_frame', 'sites_to_frame',

    # Sampling
    'OutputMode', 'Subsample', 'Omitted', 'SampleAttempt', 'SubsampleCollection',

    # Summary
    'QuotaType', 'FrequencyType', 'RarefactionEstimate', 'DiversitySummary',
]
