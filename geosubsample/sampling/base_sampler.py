"""Shared machinery for the spatial samplers.

A sampler validates its parameters, freezes them together with the dataset
into a DrawPlan and hands the plan to ``run_iterations``. Each iteration
draws from its own keyed random substream, so iterations are independent and
may run in a worker pool without changing the result.
"""

from abc import ABC, abstractmethod
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import Any, Dict, Hashable, List, Optional, Sequence

import numpy as np

from ..abstractions.types import (
    OccurrenceDataset, OutputMode, Subsample, Omitted, SampleAttempt, SubsampleCollection
)
from ..config import ProcessingConfig, resolve_enum
from ..exceptions import InsufficientPoolError, InvalidConfigurationError
from ..foundations import RandomStream, SeedLike
from ..infrastructure.logging import get_logger, iteration_scope
from ..spatial import GeometryKernel, DistanceMetric

logger = get_logger(__name__)


class DrawPlan(ABC):
    """Frozen parameters of one sampling run; picklable for process workers."""

    def __init__(self, dataset: OccurrenceDataset, output_mode: OutputMode):
        self.dataset = dataset
        self.output_mode = output_mode

    @abstractmethod
    def draw(self, iteration: int, rng: np.random.Generator) -> SampleAttempt:
        """Produce the subsample (or omission) for one iteration."""
        pass

    def emit(self, iteration: int, site_indices: Sequence[int],
             seed_site_id: Optional[Hashable] = None) -> Subsample:
        """Build a Subsample from site pool positions."""
        pool = self.dataset.site_pool
        sites = tuple(pool[int(i)] for i in site_indices)
        records = None
        if self.output_mode is OutputMode.FULL:
            records = self.dataset.records_for_sites(s.site_id for s in sites)
        return Subsample(iteration=iteration, sites=sites, records=records,
                         seed_site_id=seed_site_id)

    def omit(self, iteration: int, available: int, required: int, reason: str) -> Omitted:
        error = InsufficientPoolError(reason, available=available, required=required)
        return Omitted(iteration=iteration, reason=reason, error=error)


def _run_chunk(plan: DrawPlan, stream: RandomStream, indices: Sequence[int]) -> List[SampleAttempt]:
    """Worker entry point: draw a contiguous run of iterations."""
    attempts = []
    for i in indices:
        with iteration_scope(i):
            attempts.append(plan.draw(i, stream.substream(i).generator()))
    return attempts


def run_iterations(plan: DrawPlan,
                   stream: RandomStream,
                   iterations: int,
                   processing: Optional[ProcessingConfig] = None) -> List[SampleAttempt]:
    """Run ``iterations`` draws of ``plan`` and return them in iteration order.

    Args:
        plan: Frozen draw parameters
        stream: Root random stream; iteration i uses ``stream.substream(i)``
        iterations: Number of draws
        processing: Worker settings; sequential when None or max_workers == 1
    """
    indices = list(range(iterations))
    if processing is None or not processing.is_parallel or iterations < 2:
        return _run_chunk(plan, stream, indices)

    chunk = processing.chunk_size
    chunks = [indices[i:i + chunk] for i in range(0, iterations, chunk)]
    executor_cls = ProcessPoolExecutor if processing.parallel_backend == 'process' else ThreadPoolExecutor

    results: Dict[int, List[SampleAttempt]] = {}
    with executor_cls(max_workers=processing.max_workers) as executor:
        futures = {executor.submit(_run_chunk, plan, stream, c): idx
                   for idx, c in enumerate(chunks)}

        completed = 0
        for future in as_completed(futures):
            results[futures[future]] = future.result()
            completed += 1
            if completed % 10 == 0:
                logger.debug(f"Parallel sampling: {completed}/{len(chunks)} chunks completed")

    attempts: List[SampleAttempt] = []
    for idx in range(len(chunks)):
        attempts.extend(results[idx])
    return attempts


class BaseSampler(ABC):
    """Base class for the radial, cluster and band samplers.

    Provides:
    - Geometry kernel selection per dataset
    - Worker pool settings
    - Output mode resolution
    - Collection assembly and omission logging
    """

    name = 'sampler'

    def __init__(self,
                 metric: Optional[DistanceMetric] = None,
                 processing: Optional[ProcessingConfig] = None):
        """Initialize sampler.

        Args:
            metric: Distance metric; chosen from the dataset's crs when None
            processing: Worker pool settings; from configuration when None
        """
        self.metric = None if metric is None else resolve_enum(DistanceMetric, metric, 'distance_metric')
        self.processing = processing or ProcessingConfig.from_config()

    def kernel_for(self, dataset: OccurrenceDataset) -> GeometryKernel:
        return GeometryKernel.for_dataset(dataset, metric=self.metric)

    @staticmethod
    def resolve_output_mode(output_mode: Any) -> OutputMode:
        return resolve_enum(OutputMode, output_mode, 'output_mode')

    @staticmethod
    def check_dataset(dataset: Any) -> OccurrenceDataset:
        if not isinstance(dataset, OccurrenceDataset):
            raise InvalidConfigurationError(
                f"Expected an OccurrenceDataset, got {type(dataset).__name__}"
            )
        return dataset

    def collect(self, attempts: List[SampleAttempt],
                stream: RandomStream,
                metadata: Dict[str, Any]) -> SubsampleCollection:
        """Wrap attempts in a collection and report omissions."""
        collection = SubsampleCollection(
            attempts=attempts,
            metadata={'sampler': self.name, 'seed_entropy': stream.entropy,
                      'stream_key': stream.key, **metadata}
        )

        for omission in collection.omissions:
            logger.debug(f"{self.name}: iteration {omission.iteration} omitted ({omission.reason})")

        if collection.n_omitted:
            logger.info(
                f"{self.name}: {len(collection)}/{collection.n_requested} subsamples drawn, "
                f"{collection.n_omitted} omitted",
                extra={'context': {'n_omitted': collection.n_omitted}}
            )
        else:
            logger.info(f"{self.name}: {len(collection)} subsamples drawn")
        return collection

    @staticmethod
    def stream_for(seed: SeedLike) -> RandomStream:
        try:
            return RandomStream.coerce(seed)
        except (TypeError, ValueError) as e:
            raise InvalidConfigurationError(str(e), e)
