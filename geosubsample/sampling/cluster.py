"""Nearest-neighbour cluster subsampling ("clustr").

A cluster grows from a random seed site by repeatedly attaching the
unattached site closest to any member. Attachment in this order is Prim's
algorithm, so the running sum of attachment distances is the length of the
cluster's minimum spanning tree; growth stops before that length would
exceed the cap.
"""

from typing import Any, List, Optional

import numpy as np

from ..abstractions.types import OccurrenceDataset, OutputMode, SampleAttempt, SubsampleCollection
from ..config import require_count, require_positive
from ..exceptions import InvalidConfigurationError
from ..foundations import SeedLike
from ..infrastructure.logging import get_logger, log_operation
from ..spatial import GeometryKernel
from .base_sampler import BaseSampler, DrawPlan, run_iterations

logger = get_logger(__name__)


def grow_cluster(kernel: GeometryKernel, coords: np.ndarray, seed: int,
                 max_diameter: float) -> List[int]:
    """Site positions of the cluster grown from ``seed``, in attachment order.

    Equidistant candidates are resolved in favour of the lowest position.
    """
    n = len(coords)
    attached = [seed]
    in_cluster = np.zeros(n, dtype=bool)
    in_cluster[seed] = True
    best = kernel.distances_from(coords[seed], coords)
    total = 0.0

    while len(attached) < n:
        candidates = np.where(in_cluster, np.inf, best)
        j = int(np.argmin(candidates))
        step = float(candidates[j])
        if total + step > max_diameter:
            break

        total += step
        attached.append(j)
        in_cluster[j] = True
        best = np.minimum(best, kernel.distances_from(coords[j], coords))

    return attached


class ClusterDraw(DrawPlan):
    """Draw parameters for one clustr run."""

    def __init__(self, dataset: OccurrenceDataset, output_mode: OutputMode,
                 kernel: GeometryKernel, max_diameter: float,
                 site_quota: Optional[int], min_sites: int):
        super().__init__(dataset, output_mode)
        self.kernel = kernel
        self.max_diameter = max_diameter
        self.site_quota = site_quota
        self.min_sites = min_sites

    def draw(self, iteration: int, rng: np.random.Generator) -> SampleAttempt:
        coords = self.dataset.site_coordinates_array
        seed = int(rng.integers(len(coords)))
        seed_id = self.dataset.site_pool[seed].site_id

        members = grow_cluster(self.kernel, coords, seed, self.max_diameter)

        if len(members) < self.min_sites:
            return self.omit(
                iteration, len(members), self.min_sites,
                f"cluster from seed {seed_id!r} reached {len(members)} sites, "
                f"minimum is {self.min_sites}"
            )

        if self.site_quota is None:
            return self.emit(iteration, members, seed_site_id=seed_id)

        if len(members) < self.site_quota:
            return self.omit(
                iteration, len(members), self.site_quota,
                f"cluster from seed {seed_id!r} reached {len(members)} sites, "
                f"quota is {self.site_quota}"
            )

        # uniform rarefaction, reported in attachment order
        picked = np.sort(rng.choice(len(members), size=self.site_quota, replace=False))
        return self.emit(iteration, [members[k] for k in picked], seed_site_id=seed_id)


class ClusterSampler(BaseSampler):
    """Subsample spatially compact clusters bounded by a spanning tree length."""

    name = 'clustr'

    @log_operation('clustr', log_args=True)
    def sample(self,
               dataset: OccurrenceDataset,
               max_diameter: float,
               site_quota: Optional[int] = None,
               min_sites: int = 3,
               iterations: int = 100,
               output_mode: Any = OutputMode.LOCATIONS,
               seed: SeedLike = None) -> SubsampleCollection:
        """Draw ``iterations`` nearest-neighbour clusters.

        Args:
            dataset: Occurrence dataset providing the site pool
            max_diameter: Cap on the cluster's minimum spanning tree length
            site_quota: Rarefy each cluster to exactly this many sites;
                return whole clusters when None
            min_sites: Clusters with fewer members are omitted
            iterations: Number of independent draws
            output_mode: ``locations`` or ``full``
            seed: Random seed or RandomStream

        Raises:
            InvalidConfigurationError: for invalid or contradictory parameters
        """
        dataset = self.check_dataset(dataset)
        max_diameter = require_positive('max_diameter', max_diameter)
        min_sites = require_count('min_sites', min_sites)
        iterations = require_count('iterations', iterations)
        if site_quota is not None:
            site_quota = require_count('site_quota', site_quota)
            if site_quota < min_sites:
                raise InvalidConfigurationError(
                    f"site_quota ({site_quota}) is below min_sites ({min_sites})"
                )
        output_mode = self.resolve_output_mode(output_mode)
        stream = self.stream_for(seed)
        kernel = self.kernel_for(dataset)

        plan = ClusterDraw(dataset, output_mode, kernel, max_diameter, site_quota, min_sites)
        attempts = run_iterations(plan, stream, iterations, self.processing)

        return self.collect(attempts, stream, {
            'max_diameter': max_diameter,
            'site_quota': site_quota,
            'min_sites': min_sites,
            'output_mode': output_mode.value,
            'distance_metric': kernel.metric.value,
            'n_site_pool': dataset.n_sites,
        })


def clustr(dataset: OccurrenceDataset, max_diameter: float, site_quota: Optional[int] = None,
           min_sites: int = 3, iterations: int = 100, output_mode: Any = OutputMode.LOCATIONS,
           seed: SeedLike = None, **kwargs) -> SubsampleCollection:
    """Functional shortcut for ``ClusterSampler(**kwargs).sample(...)``."""
    return ClusterSampler(**kwargs).sample(
        dataset, max_diameter, site_quota=site_quota, min_sites=min_sites,
        iterations=iterations, output_mode=output_mode, seed=seed
    )
