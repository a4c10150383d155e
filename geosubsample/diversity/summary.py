"""Spatial and taxonomic summary of subsamples ("sdsumry").

Every subsample becomes one DiversitySummary row: spatial extent and
dispersion of its locations, occurrence and taxon counts, and richness
standardised by sample size and by coverage. Problems confined to one row
(a single location, an unreachable quota) are reported in the row's
``issues`` instead of aborting the batch.
"""

import threading
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..abstractions.types import (
    CoordinateSystem, DiversitySummary, QuotaType,
    RarefactionEstimate, Subsample, SubsampleCollection
)
from ..config import ProcessingConfig, require_count, require_fraction, resolve_enum
from ..exceptions import DegenerateInputError, InfeasibleRarefactionError, InvalidConfigurationError
from ..foundations import RandomStream, SeedLike
from ..infrastructure.logging import get_logger, iteration_scope, log_operation
from ..spatial import DistanceMetric, GeometryKernel
from .rarefaction import (
    ChaoRarefactionEstimator, FrequencySample, RichnessEstimator, pielou_evenness, sample_coverage
)

logger = get_logger(__name__)

SummaryInput = Union[Subsample, pd.DataFrame]
NAN = float('nan')
DEFAULT_SITE_KEY = 'site_id'

# (position, records, iteration, site locations or None)
SummaryRow = Tuple[int, pd.DataFrame, Optional[int], Optional[np.ndarray]]


def taxon_frequencies(frame: pd.DataFrame, taxon_key: str,
                      collections_key: Optional[str] = None) -> FrequencySample:
    """Abundance (occurrences per taxon) or incidence (collections per taxon) frequencies.

    Taxa appear in order of first occurrence.
    """
    if collections_key is None:
        counts = frame.groupby(taxon_key, sort=False).size()
        return FrequencySample.from_abundances(counts.to_numpy())

    incidence = frame.drop_duplicates(subset=[taxon_key, collections_key])
    counts = incidence.groupby(taxon_key, sort=False).size()
    n_units = int(frame[collections_key].nunique())
    return FrequencySample.from_incidence(counts.to_numpy(), max(n_units, 1))


def most_common_taxon(frame: pd.DataFrame, taxon_key: str) -> Any:
    """Taxon with the most occurrences; the first seen wins ties."""
    counts = frame.groupby(taxon_key, sort=False).size()
    return counts.index[int(np.argmax(counts.to_numpy()))]


class SummaryPlan:
    """Frozen summary parameters; picklable for process workers."""

    def __init__(self,
                 kernel: GeometryKernel,
                 estimator: RichnessEstimator,
                 taxon_key: str,
                 coordinate_keys: Tuple[str, str],
                 collections_key: Optional[str] = None,
                 classical_quota: Optional[int] = None,
                 coverage_quota: Optional[float] = None,
                 omit_most_common_taxon: bool = False,
                 site_key: Optional[str] = DEFAULT_SITE_KEY):
        self.kernel = kernel
        self.estimator = estimator
        self.taxon_key = taxon_key
        self.coordinate_keys = coordinate_keys
        self.collections_key = collections_key
        self.classical_quota = classical_quota
        self.coverage_quota = coverage_quota
        self.omit_most_common_taxon = omit_most_common_taxon
        self.site_key = site_key

    @property
    def required_columns(self) -> List[str]:
        cols = [self.taxon_key, *self.coordinate_keys]
        if self.collections_key is not None:
            cols.append(self.collections_key)
        return cols

    def check_columns(self, frame: pd.DataFrame) -> None:
        missing = [c for c in self.required_columns if c not in frame.columns]
        if missing:
            raise InvalidConfigurationError(
                f"Columns not found: {missing}; location-only subsamples cannot be "
                f"summarised, sample with output_mode='full'"
            )
        if (self.site_key is not None and self.site_key != DEFAULT_SITE_KEY
                and self.site_key not in frame.columns):
            raise InvalidConfigurationError(f"Site column not found: {self.site_key!r}")

    def summarize_frame(self, frame: pd.DataFrame, iteration: Optional[int],
                        rng: np.random.Generator,
                        sites: Optional[np.ndarray] = None) -> DiversitySummary:
        """One summary row; ``sites`` holds one location per site when known."""
        issues: List[str] = []

        complete = frame.dropna(subset=self.required_columns)
        if len(complete) < len(frame):
            issues.append(f"{len(frame) - len(complete)} records with missing values ignored")
        frame = complete

        n_collections = None
        if self.collections_key is not None:
            n_collections = int(frame[self.collections_key].nunique())

        geometry = self._geometry(self.site_points(frame, sites), issues)
        full = taxon_frequencies(frame, self.taxon_key, self.collections_key)

        rare = frame
        if self.omit_most_common_taxon and len(frame):
            dominant = most_common_taxon(frame, self.taxon_key)
            rare = frame[frame[self.taxon_key] != dominant]

        sample = taxon_frequencies(rare, self.taxon_key, self.collections_key)
        classical = self._estimate(sample, QuotaType.SAMPLE_SIZE, self.classical_quota, rng, issues)
        by_coverage = self._estimate(sample, QuotaType.COVERAGE, self.coverage_quota, rng, issues)

        return DiversitySummary(
            n_sites=geometry['n_sites'],
            n_occurrences=int(len(frame)),
            n_taxa=int(frame[self.taxon_key].nunique()),
            centroid_x=geometry['centroid_x'],
            centroid_y=geometry['centroid_y'],
            lat_range=geometry['lat_range'],
            great_circle_diameter=geometry['diameter'],
            mean_pairwise_distance=geometry['mean_pairwise_distance'],
            total_mst=geometry['total_mst'],
            n_collections=n_collections,
            classical_richness=classical[0],
            classical_lower=classical[1],
            classical_upper=classical[2],
            coverage_richness=by_coverage[0],
            coverage_lower=by_coverage[1],
            coverage_upper=by_coverage[2],
            coverage=sample_coverage(sample) if sample.s_obs else NAN,
            evenness=pielou_evenness(full.frequencies),
            iteration=iteration,
            issues=tuple(issues),
        )

    def site_points(self, frame: pd.DataFrame, sites: Optional[np.ndarray] = None) -> np.ndarray:
        """One location per site, in order of first appearance.

        Records sharing a site id collapse to the site's first record. Without
        a site column every distinct location counts as a site.
        """
        if sites is not None:
            return np.asarray(sites, dtype=float).reshape(-1, 2)
        keys = list(self.coordinate_keys)
        if self.site_key is not None and self.site_key in frame.columns:
            points = frame.groupby(self.site_key, sort=False, dropna=False)[keys].first()
        else:
            points = frame.drop_duplicates(subset=keys)[keys]
        return points.to_numpy(dtype=float).reshape(-1, 2)

    def _geometry(self, points: np.ndarray, issues: List[str]) -> Dict[str, Any]:
        result = {
            'n_sites': int(len(points)),
            'centroid_x': NAN,
            'centroid_y': NAN,
            'lat_range': NAN,
            'diameter': NAN,
            'mean_pairwise_distance': NAN,
            'total_mst': NAN,
        }
        if len(points) and self.kernel.crs.is_geographic:
            result['lat_range'] = float(points[:, 1].max() - points[:, 1].min())

        try:
            result['centroid_x'], result['centroid_y'] = self.kernel.centroid(points)
            result['total_mst'] = self.kernel.minimum_spanning_tree(points).total_length
        except DegenerateInputError as e:
            issues.append(f"geometry undefined: {e}")
            return result

        result['diameter'] = self.kernel.diameter(points)
        result['mean_pairwise_distance'] = self.kernel.mean_pairwise_distance(points)
        return result

    def _estimate(self, sample: FrequencySample, quota_type: QuotaType,
                  quota: Optional[float], rng: np.random.Generator,
                  issues: List[str]) -> Tuple[Optional[float], Optional[float], Optional[float]]:
        if quota is None:
            return None, None, None
        try:
            est: RarefactionEstimate = self.estimator.estimate_richness(sample, quota_type, quota, rng=rng)
        except InfeasibleRarefactionError as e:
            issues.append(f"{quota_type.value} rarefaction: {e}")
            return NAN, NAN, NAN
        return est.estimate, est.lower_ci, est.upper_ci


def _summarize_chunk(plan: SummaryPlan, rows: Sequence[SummaryRow],
                     stream: RandomStream) -> List[Tuple[int, DiversitySummary]]:
    """Worker entry point: summarise ``(position, frame, iteration, sites)`` rows."""
    out = []
    for pos, frame, iteration, sites in rows:
        with iteration_scope(pos if iteration is None else iteration):
            out.append((pos, plan.summarize_frame(
                frame, iteration, stream.substream(pos).generator(), sites=sites
            )))
    return out


class DiversitySummarizer:
    """Summarise subsamples into DiversitySummary rows."""

    def __init__(self,
                 crs: Any = CoordinateSystem.GEOGRAPHIC,
                 metric: Optional[Any] = None,
                 estimator: Optional[RichnessEstimator] = None,
                 processing: Optional[ProcessingConfig] = None,
                 n_bootstrap: int = 50,
                 confidence_level: float = 0.95):
        """Initialize summariser.

        Args:
            crs: Coordinate system of the subsample coordinates
            metric: Distance metric; chosen from ``crs`` when None
            estimator: Richness estimator; a ChaoRarefactionEstimator built
                per call when None
            processing: Worker pool settings; from configuration when None
            n_bootstrap: Bootstrap replicates of the default estimator
            confidence_level: Interval level of the default estimator
        """
        crs = resolve_enum(CoordinateSystem, crs, 'crs')
        metric = None if metric is None else resolve_enum(DistanceMetric, metric, 'distance_metric')
        self.kernel = GeometryKernel(crs=crs, metric=metric)
        self.estimator = estimator
        self.processing = processing or ProcessingConfig.from_config()
        self.n_bootstrap = require_count('n_bootstrap', n_bootstrap, minimum=0)
        self.confidence_level = require_fraction('confidence_level', confidence_level)

    def estimator_for(self, allow_extrapolation: bool) -> RichnessEstimator:
        if self.estimator is not None:
            return self.estimator
        return ChaoRarefactionEstimator(
            n_bootstrap=self.n_bootstrap,
            confidence_level=self.confidence_level,
            allow_extrapolation=allow_extrapolation,
        )

    @log_operation('sdsumry', log_args=True)
    def summarize(self,
                  data: Union[SummaryInput, SubsampleCollection, Sequence[SummaryInput]],
                  taxon_key: str = 'taxon_id',
                  coordinate_keys: Sequence[str] = ('x', 'y'),
                  collections_key: Optional[str] = None,
                  classical_quota: Optional[int] = None,
                  coverage_quota: Optional[float] = None,
                  omit_most_common_taxon: bool = False,
                  allow_extrapolation: bool = False,
                  site_key: Optional[str] = DEFAULT_SITE_KEY,
                  seed: SeedLike = None,
                  cancel_event: Optional[threading.Event] = None
                  ) -> Union[DiversitySummary, List[DiversitySummary]]:
        """Summarise one subsample or every subsample of a collection.

        Args:
            data: Full-mode Subsample, records DataFrame, SubsampleCollection
                or a sequence of Subsamples/DataFrames
            taxon_key: Column naming the taxon
            coordinate_keys: Columns of the (x, y) location
            collections_key: Column naming the collection; switches
                rarefaction to incidence frequencies over collections
            classical_quota: Sample size to rarefy to (occurrences, or
                collections with ``collections_key``)
            coverage_quota: Coverage in (0, 1] to rarefy to
            omit_most_common_taxon: Drop the dominant taxon before rarefaction
            allow_extrapolation: Let quotas exceed the observed sample
            site_key: Column of site ids for DataFrame input; records of one
                site count once in the spatial statistics. Without the
                column every distinct location is a site; None forces that
            seed: Random seed or RandomStream for the bootstrap intervals
            cancel_event: When set, stop between rows and return finished rows

        Returns:
            One DiversitySummary for a single subsample or frame, otherwise a
            list in input order

        Raises:
            InvalidConfigurationError: for invalid quotas or missing columns
        """
        coordinate_keys = tuple(coordinate_keys)
        if len(coordinate_keys) != 2:
            raise InvalidConfigurationError("coordinate_keys must name exactly two columns")
        if classical_quota is not None:
            classical_quota = require_count('classical_quota', classical_quota)
        if coverage_quota is not None:
            coverage_quota = require_fraction('coverage_quota', coverage_quota)

        single = isinstance(data, (Subsample, pd.DataFrame))
        rows = self._rows(data)

        plan = SummaryPlan(
            kernel=self.kernel,
            estimator=self.estimator_for(allow_extrapolation),
            taxon_key=taxon_key,
            coordinate_keys=coordinate_keys,
            collections_key=collections_key,
            classical_quota=classical_quota,
            coverage_quota=coverage_quota,
            omit_most_common_taxon=omit_most_common_taxon,
            site_key=site_key,
        )
        for _, frame, _, _ in rows:
            plan.check_columns(frame)

        try:
            stream = RandomStream.coerce(seed)
        except (TypeError, ValueError) as e:
            raise InvalidConfigurationError(str(e), e)

        summaries = self._run(plan, rows, stream, cancel_event)

        n_issues = sum(1 for s in summaries if s.issues)
        if n_issues:
            logger.info(f"sdsumry: {len(summaries)} rows, {n_issues} with issues")
        else:
            logger.info(f"sdsumry: {len(summaries)} rows")

        if single:
            return summaries[0]
        return summaries

    @staticmethod
    def _rows(data) -> List[SummaryRow]:
        if isinstance(data, (Subsample, pd.DataFrame)):
            items = [data]
        elif isinstance(data, SubsampleCollection):
            items = data.subsamples
        elif isinstance(data, Sequence) and not isinstance(data, str):
            items = list(data)
        else:
            raise InvalidConfigurationError(f"Cannot summarise {type(data).__name__}")

        rows = []
        for pos, item in enumerate(items):
            if isinstance(item, Subsample):
                rows.append((pos, item.to_frame(), item.iteration, item.coordinates))
            elif isinstance(item, pd.DataFrame):
                rows.append((pos, item, None, None))
            else:
                raise InvalidConfigurationError(f"Cannot summarise {type(item).__name__}")
        return rows

    def _run(self, plan: SummaryPlan, rows, stream: RandomStream,
             cancel_event: Optional[threading.Event]) -> List[DiversitySummary]:
        done: Dict[int, DiversitySummary] = {}

        if not self.processing.is_parallel or len(rows) < 2:
            for row in rows:
                if cancel_event is not None and cancel_event.is_set():
                    logger.warning(f"sdsumry: cancelled after {len(done)}/{len(rows)} rows")
                    break
                done.update(_summarize_chunk(plan, [row], stream))
            return [done[pos] for pos in sorted(done)]

        chunk = self.processing.chunk_size
        chunks = [rows[i:i + chunk] for i in range(0, len(rows), chunk)]
        executor_cls = (ProcessPoolExecutor if self.processing.parallel_backend == 'process'
                        else ThreadPoolExecutor)

        with executor_cls(max_workers=self.processing.max_workers) as executor:
            futures = [executor.submit(_summarize_chunk, plan, c, stream) for c in chunks]
            for future in as_completed(futures):
                done.update(future.result())
                if cancel_event is not None and cancel_event.is_set():
                    for pending in futures:
                        pending.cancel()
                    logger.warning(f"sdsumry: cancelled after {len(done)}/{len(rows)} rows")
                    break

        return [done[pos] for pos in sorted(done)]


def summaries_to_frame(summaries: Sequence[DiversitySummary]) -> pd.DataFrame:
    """Tabulate summary rows; ``issues`` are joined with '; '."""
    records = []
    for summary in summaries:
        row = summary.as_dict()
        row['issues'] = '; '.join(summary.issues)
        records.append(row)
    return pd.DataFrame(records, columns=list(DiversitySummary.__dataclass_fields__))


def sdsumry(data, taxon_key: str = 'taxon_id', coordinate_keys: Sequence[str] = ('x', 'y'),
            collections_key: Optional[str] = None, classical_quota: Optional[int] = None,
            coverage_quota: Optional[float] = None, omit_most_common_taxon: bool = False,
            allow_extrapolation: bool = False, seed: SeedLike = None,
            site_key: Optional[str] = DEFAULT_SITE_KEY, **kwargs):
    """Functional shortcut for ``DiversitySummarizer(**kwargs).summarize(...)``."""
    return DiversitySummarizer(**kwargs).summarize(
        data, taxon_key=taxon_key, coordinate_keys=coordinate_keys,
        collections_key=collections_key, classical_quota=classical_quota,
        coverage_quota=coverage_quota, omit_most_common_taxon=omit_most_common_taxon,
        allow_extrapolation=allow_extrapolation, seed=seed, site_key=site_key
    )
