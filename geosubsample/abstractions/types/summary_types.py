# geosubsample/abstractions/types/summary_types.py
"""Diversity summary type definitions."""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class QuotaType(Enum):
    """Standardisation target for rarefaction."""
    SAMPLE_SIZE = "size"      # classical, count based
    COVERAGE = "coverage"     # coverage based (shareholder quorum)


class FrequencyType(Enum):
    """Kind of frequency vector handed to the estimator."""
    ABUNDANCE = "abundance"
    INCIDENCE = "incidence"


@dataclass(frozen=True)
class RarefactionEstimate:
    """Richness standardised to a quota, with a 95% interval."""
    estimate: float
    lower_ci: float
    upper_ci: float
    coverage: float        # estimated coverage at the standardised sample size
    sample_size: float     # standardised sample size (may be fractional)
    extrapolated: bool = False


@dataclass(frozen=True)
class DiversitySummary:
    """Spatial and taxonomic statistics of one subsample."""
    n_sites: int
    n_occurrences: int
    n_taxa: int
    centroid_x: float
    centroid_y: float
    lat_range: float
    great_circle_diameter: float
    mean_pairwise_distance: float
    total_mst: float
    n_collections: Optional[int] = None
    classical_richness: Optional[float] = None
    classical_lower: Optional[float] = None
    classical_upper: Optional[float] = None
    coverage_richness: Optional[float] = None
    coverage_lower: Optional[float] = None
    coverage_upper: Optional[float] = None
    coverage: Optional[float] = None
    evenness: Optional[float] = None
    iteration: Optional[int] = None
    issues: Tuple[str, ...] = ()

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)
