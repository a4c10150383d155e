# geosubsample/abstractions/types/sampling_types.py
"""Subsample result type definitions."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Hashable, Iterator, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .occurrence_types import OccurrenceRecord, Site, records_to_frame, sites_to_frame
from ...exceptions import InsufficientPoolError


class OutputMode(Enum):
    """What a sampler emits for each subsample."""
    LOCATIONS = "locations"
    FULL = "full"


@dataclass(frozen=True)
class Subsample:
    """One replicate draw of sites satisfying a sampler's spatial constraint.

    For radial draws the first site is the seed. ``records`` is populated
    only when the sampler runs with ``OutputMode.FULL``.
    """
    iteration: int
    sites: Tuple[Site, ...]
    records: Optional[Tuple[OccurrenceRecord, ...]] = None
    seed_site_id: Optional[Hashable] = None

    @property
    def n_sites(self) -> int:
        return len(self.sites)

    @property
    def site_ids(self) -> Tuple[Hashable, ...]:
        return tuple(s.site_id for s in self.sites)

    @property
    def coordinates(self) -> np.ndarray:
        return np.array([s.coordinates for s in self.sites], dtype=float).reshape(-1, 2)

    @property
    def is_full(self) -> bool:
        return self.records is not None

    def to_frame(self) -> pd.DataFrame:
        """Records table in full mode, otherwise the site location table."""
        if self.records is not None:
            return records_to_frame(self.records)
        return sites_to_frame(self.sites)


@dataclass(frozen=True)
class Omitted:
    """Marker for an iteration that could not produce a subsample."""
    iteration: int
    reason: str
    error: Optional[InsufficientPoolError] = None


SampleAttempt = Union[Subsample, Omitted]


@dataclass
class SubsampleCollection:
    """Ordered outcome of ``n_requested`` independent draws.

    ``attempts`` keeps every iteration in order, either as a Subsample or an
    Omitted marker. Iterating the collection yields only the subsamples.
    """
    attempts: List[SampleAttempt] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def subsamples(self) -> List[Subsample]:
        return [a for a in self.attempts if isinstance(a, Subsample)]

    @property
    def omissions(self) -> List[Omitted]:
        return [a for a in self.attempts if isinstance(a, Omitted)]

    @property
    def n_requested(self) -> int:
        return len(self.attempts)

    @property
    def n_omitted(self) -> int:
        return len(self.omissions)

    def __iter__(self) -> Iterator[Subsample]:
        return iter(self.subsamples)

    def __len__(self) -> int:
        return len(self.subsamples)

    def __getitem__(self, index: int) -> Subsample:
        return self.subsamples[index]

    def to_frame(self) -> pd.DataFrame:
        """Concatenate all subsamples with an ``iteration`` column."""
        frames = []
        for sub in self.subsamples:
            frame = sub.to_frame()
            frame.insert(0, 'iteration', sub.iteration)
            frames.append(frame)
        if not frames:
            return pd.DataFrame(columns=['iteration'])
        return pd.concat(frames, ignore_index=True)
