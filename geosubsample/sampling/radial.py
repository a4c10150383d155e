"""Radius-constrained subsampling ("cookies").

Each iteration picks a seed site, pools every site within a fixed radius of
it and rarefies the pool to a fixed number of sites. The seed is always the
first site of the subsample; companions are drawn uniformly or with
probability decaying with distance from the seed.
"""

from typing import Any, Optional

import numpy as np

from ..abstractions.types import OccurrenceDataset, OutputMode, SampleAttempt, SubsampleCollection
from ..config import require_count, require_positive
from ..exceptions import InsufficientPoolError
from ..foundations import SeedLike
from ..infrastructure.logging import get_logger, log_operation
from ..spatial import GeometryKernel, SiteWeighter, WeightingScheme
from .base_sampler import BaseSampler, DrawPlan, run_iterations

logger = get_logger(__name__)


class RadialDraw(DrawPlan):
    """Draw parameters for one cookies run."""

    def __init__(self, dataset: OccurrenceDataset, output_mode: OutputMode,
                 kernel: GeometryKernel, weighter: SiteWeighter,
                 radius: float, site_quota: int,
                 seed_candidates: Optional[np.ndarray] = None):
        super().__init__(dataset, output_mode)
        self.kernel = kernel
        self.weighter = weighter
        self.radius = radius
        self.site_quota = site_quota
        self.seed_candidates = seed_candidates

    def draw(self, iteration: int, rng: np.random.Generator) -> SampleAttempt:
        coords = self.dataset.site_coordinates_array

        if self.seed_candidates is None:
            seed = int(rng.integers(len(coords)))
        else:
            seed = int(self.seed_candidates[rng.integers(len(self.seed_candidates))])
        seed_id = self.dataset.site_pool[seed].site_id

        dist = self.kernel.distances_from(coords[seed], coords)
        in_pool = np.flatnonzero(dist <= self.radius)

        if len(in_pool) < self.site_quota:
            return self.omit(
                iteration, len(in_pool), self.site_quota,
                f"{len(in_pool)} sites within {self.radius:g} of seed {seed_id!r}, "
                f"quota is {self.site_quota}"
            )

        companions = in_pool[in_pool != seed]
        n_companions = self.site_quota - 1
        if n_companions == 0:
            return self.emit(iteration, [seed], seed_site_id=seed_id)

        p = None if self.weighter.is_uniform else self.weighter.probabilities(dist[companions])
        picked = rng.choice(companions, size=n_companions, replace=False, p=p)
        return self.emit(iteration, [seed, *picked.tolist()], seed_site_id=seed_id)


class RadialSampler(BaseSampler):
    """Subsample sites within a fixed-radius disc around random seed sites."""

    name = 'cookies'

    def __init__(self, weight_power: float = 2.0, **kwargs):
        """Initialize sampler.

        Args:
            weight_power: Decay exponent used when ``weighted`` draws are requested
            **kwargs: ``metric`` and ``processing`` for BaseSampler
        """
        super().__init__(**kwargs)
        self.weight_power = require_positive('weight_power', weight_power)

    @log_operation('cookies', log_args=True)
    def sample(self,
               dataset: OccurrenceDataset,
               radius: float,
               site_quota: int,
               iterations: int,
               weighted: bool = False,
               output_mode: Any = OutputMode.LOCATIONS,
               seed: SeedLike = None,
               restrict_seeds: bool = False) -> SubsampleCollection:
        """Draw ``iterations`` radius-constrained subsamples.

        Args:
            dataset: Occurrence dataset providing the site pool
            radius: Absolute radius around the seed (km for geographic data)
            site_quota: Exact number of sites per subsample, seed included
            iterations: Number of independent draws
            weighted: Draw companions with inverse-distance weights
            output_mode: ``locations`` or ``full`` (records of chosen sites)
            seed: Random seed or RandomStream
            restrict_seeds: Only seed at sites whose pool can meet the quota

        Returns:
            SubsampleCollection, with an Omitted entry for every iteration
            whose pool was smaller than the quota

        Raises:
            InvalidConfigurationError: for invalid parameters
            InsufficientPoolError: when ``restrict_seeds`` finds no usable seed
        """
        dataset = self.check_dataset(dataset)
        radius = require_positive('radius', radius)
        site_quota = require_count('site_quota', site_quota)
        iterations = require_count('iterations', iterations)
        output_mode = self.resolve_output_mode(output_mode)
        stream = self.stream_for(seed)

        kernel = self.kernel_for(dataset)
        scheme = WeightingScheme.INVERSE_DISTANCE if weighted else WeightingScheme.UNIFORM
        weighter = SiteWeighter(scheme=scheme, power=self.weight_power, kernel=kernel)

        seed_candidates = None
        if restrict_seeds:
            counts = kernel.neighbour_counts(dataset.site_coordinates_array, radius)
            seed_candidates = np.flatnonzero(counts >= site_quota)
            if len(seed_candidates) == 0:
                raise InsufficientPoolError(
                    f"No site has {site_quota} sites within {radius:g}; "
                    f"largest pool holds {int(counts.max())}",
                    available=int(counts.max()), required=site_quota
                )
            logger.debug(f"cookies: {len(seed_candidates)}/{dataset.n_sites} sites can seed a draw")

        plan = RadialDraw(dataset, output_mode, kernel, weighter, radius, site_quota, seed_candidates)
        attempts = run_iterations(plan, stream, iterations, self.processing)

        return self.collect(attempts, stream, {
            'radius': radius,
            'site_quota': site_quota,
            'weighted': weighted,
            'output_mode': output_mode.value,
            'distance_metric': kernel.metric.value,
            'restrict_seeds': restrict_seeds,
            'n_site_pool': dataset.n_sites,
        })


def cookies(dataset: OccurrenceDataset, radius: float, site_quota: int, iterations: int,
            weighted: bool = False, output_mode: Any = OutputMode.LOCATIONS,
            seed: SeedLike = None, **kwargs) -> SubsampleCollection:
    """Functional shortcut for ``RadialSampler().sample(...)``.

    ``restrict_seeds`` is forwarded to ``sample``; any other keyword goes to
    the sampler constructor.
    """
    restrict_seeds = kwargs.pop('restrict_seeds', False)
    return RadialSampler(**kwargs).sample(
        dataset, radius, site_quota, iterations,
        weighted=weighted, output_mode=output_mode, seed=seed,
        restrict_seeds=restrict_seeds
    )
