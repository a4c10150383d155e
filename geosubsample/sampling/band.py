"""Latitude band subsampling ("bandit").

The latitude axis is cut into contiguous bands of fixed width starting at
the south pole (or the equator when latitudes are folded to absolute
values). Every band holding at least the site quota receives its own set of
uniform draws; thinner bands are left out of the result.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List

import numpy as np

from ..abstractions.types import OccurrenceDataset, OutputMode, SampleAttempt, SubsampleCollection
from ..config import require_count, require_positive
from ..exceptions import InvalidConfigurationError
from ..foundations import SeedLike
from ..infrastructure.logging import get_logger, log_operation
from .base_sampler import BaseSampler, DrawPlan, run_iterations

logger = get_logger(__name__)


@dataclass(frozen=True)
class LatitudeBand:
    """One band of the latitude partition."""
    index: int
    lower: float
    upper: float
    closed_above: bool = False

    @property
    def label(self) -> str:
        close = ']' if self.closed_above else ')'
        return f"[{self.lower:g}, {self.upper:g}{close}"

    def contains(self, latitude: float) -> bool:
        if self.closed_above:
            return self.lower <= latitude <= self.upper
        return self.lower <= latitude < self.upper


def latitude_bands(band_width: float, use_absolute_latitude: bool = False) -> List[LatitudeBand]:
    """Contiguous bands covering [-90, 90] (or [0, 90]); the last band may be narrower."""
    origin = 0.0 if use_absolute_latitude else -90.0
    n_bands = int(math.ceil((90.0 - origin) / band_width - 1e-9))
    bands = []
    for k in range(n_bands):
        lower = origin + k * band_width
        last = k == n_bands - 1
        upper = 90.0 if last else min(origin + (k + 1) * band_width, 90.0)
        bands.append(LatitudeBand(k, lower, upper, closed_above=last))
    return bands


def assign_bands(latitudes: np.ndarray, band_width: float,
                 use_absolute_latitude: bool = False) -> np.ndarray:
    """Band index of each latitude under ``latitude_bands``.

    Indices come from the same band edges ``LatitudeBand.contains`` tests, so
    a latitude is always assigned to the band that contains it.
    """
    lat = np.abs(latitudes) if use_absolute_latitude else np.asarray(latitudes, dtype=float)
    lowers = np.array([b.lower for b in latitude_bands(band_width, use_absolute_latitude)])
    idx = np.searchsorted(lowers, lat, side='right') - 1
    return np.clip(idx, 0, len(lowers) - 1)


class BandDraw(DrawPlan):
    """Uniform draws of a fixed number of sites from one band."""

    def __init__(self, dataset: OccurrenceDataset, output_mode: OutputMode,
                 band_sites: np.ndarray, site_quota: int):
        super().__init__(dataset, output_mode)
        self.band_sites = band_sites
        self.site_quota = site_quota

    def draw(self, iteration: int, rng: np.random.Generator) -> SampleAttempt:
        picked = rng.choice(self.band_sites, size=self.site_quota, replace=False)
        return self.emit(iteration, picked.tolist())


class BandSampler(BaseSampler):
    """Subsample sites within latitude bands."""

    name = 'bandit'

    @log_operation('bandit', log_args=True)
    def sample(self,
               dataset: OccurrenceDataset,
               band_width: float,
               site_quota: int,
               iterations_per_band: int,
               use_absolute_latitude: bool = False,
               output_mode: Any = OutputMode.LOCATIONS,
               seed: SeedLike = None) -> Dict[str, SubsampleCollection]:
        """Draw ``iterations_per_band`` subsamples in every sufficiently occupied band.

        Args:
            dataset: Geographic occurrence dataset
            band_width: Band width in degrees of latitude
            site_quota: Exact number of sites per subsample
            iterations_per_band: Draws per qualifying band
            use_absolute_latitude: Fold the southern hemisphere onto the northern
            output_mode: ``locations`` or ``full``
            seed: Random seed or RandomStream

        Returns:
            Mapping from band label to its SubsampleCollection, ordered from
            the lowest band upward; bands with fewer than ``site_quota``
            sites are absent

        Raises:
            InvalidConfigurationError: for invalid parameters or planar data
        """
        dataset = self.check_dataset(dataset)
        if not dataset.crs.is_geographic:
            raise InvalidConfigurationError("Latitude bands need a geographic dataset")
        band_width = require_positive('band_width', band_width)
        if band_width > 180:
            raise InvalidConfigurationError(f"band_width cannot exceed 180 degrees, got {band_width:g}")
        site_quota = require_count('site_quota', site_quota)
        iterations_per_band = require_count('iterations_per_band', iterations_per_band)
        output_mode = self.resolve_output_mode(output_mode)
        stream = self.stream_for(seed)

        latitudes = dataset.site_coordinates_array[:, 1]
        membership = assign_bands(latitudes, band_width, use_absolute_latitude)

        result: Dict[str, SubsampleCollection] = {}
        for band in latitude_bands(band_width, use_absolute_latitude):
            band_sites = np.flatnonzero(membership == band.index)
            if len(band_sites) == 0:
                continue
            if len(band_sites) < site_quota:
                logger.info(
                    f"bandit: band {band.label} skipped, {len(band_sites)} sites "
                    f"below quota {site_quota}"
                )
                continue

            plan = BandDraw(dataset, output_mode, band_sites, site_quota)
            band_stream = stream.substream(band.index)
            attempts = run_iterations(plan, band_stream, iterations_per_band, self.processing)
            result[band.label] = self.collect(attempts, band_stream, {
                'band_label': band.label,
                'band_lower': band.lower,
                'band_upper': band.upper,
                'n_band_sites': int(len(band_sites)),
                'site_quota': site_quota,
                'use_absolute_latitude': use_absolute_latitude,
                'output_mode': output_mode.value,
            })

        logger.info(f"bandit: {len(result)} bands sampled")
        return result


def bandit(dataset: OccurrenceDataset, band_width: float, site_quota: int,
           iterations_per_band: int, use_absolute_latitude: bool = False,
           output_mode: Any = OutputMode.LOCATIONS, seed: SeedLike = None,
           **kwargs) -> Dict[str, SubsampleCollection]:
    """Functional shortcut for ``BandSampler(**kwargs).sample(...)``."""
    return BandSampler(**kwargs).sample(
        dataset, band_width, site_quota, iterations_per_band,
        use_absolute_latitude=use_absolute_latitude, output_mode=output_mode, seed=seed
    )
