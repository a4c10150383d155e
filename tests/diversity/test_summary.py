"""Tests for subsample diversity summaries (sdsumry)."""

import math
import threading

import numpy as np
import pandas as pd
import pytest

from geosubsample.abstractions.types import (
    DiversitySummary, OccurrenceDataset, OccurrenceRecord, OutputMode, QuotaType
)
from geosubsample.config import ProcessingConfig
from geosubsample.diversity import (
    ChaoRarefactionEstimator, DiversitySummarizer, FrequencySample, sdsumry, summaries_to_frame
)
from geosubsample.exceptions import InvalidConfigurationError
from geosubsample.sampling import RadialSampler
from geosubsample.spatial import GeometryKernel


@pytest.fixture
def planar(sequential):
    return DiversitySummarizer(crs='planar', processing=sequential, n_bootstrap=20)


@pytest.fixture
def geographic(sequential):
    return DiversitySummarizer(processing=sequential, n_bootstrap=20)


@pytest.fixture
def full_collection(sequential, grid_dataset):
    return RadialSampler(processing=sequential).sample(
        grid_dataset, radius=200.0, site_quota=5, iterations=12,
        output_mode=OutputMode.FULL, seed=13
    )


@pytest.fixture
def spread_sites_frame():
    """Two sites, each with two records 0.2 units apart."""
    return pd.DataFrame({
        'taxon_id': ['a', 'b', 'a', 'c'],
        'site_id': ['s1', 's1', 's2', 's2'],
        'x': [0.0, 0.2, 5.0, 5.2],
        'y': [0.0, 0.0, 0.0, 0.0],
    })


class TestSingleSubsample:
    """One row from one table."""

    def test_counts_and_geometry(self, planar, community_frame):
        row = planar.summarize(community_frame, collections_key='collection_id')

        assert isinstance(row, DiversitySummary)
        assert row.n_sites == 4
        assert row.n_occurrences == 19
        assert row.n_taxa == 6
        assert row.n_collections == 5
        assert (row.centroid_x, row.centroid_y) == pytest.approx((0.5, 0.5))
        assert math.isnan(row.lat_range)
        assert row.great_circle_diameter == pytest.approx(math.sqrt(2))
        assert row.mean_pairwise_distance == pytest.approx((4 + 2 * math.sqrt(2)) / 6)
        assert row.total_mst == pytest.approx(3.0)
        assert row.issues == ()

    def test_latitude_range_on_geographic_data(self, geographic, community_frame):
        row = geographic.summarize(community_frame)
        assert row.lat_range == pytest.approx(1.0)

    def test_coverage_and_evenness(self, planar, community_frame):
        row = planar.summarize(community_frame)
        assert row.coverage == pytest.approx(1 - 36 / 361)
        assert 0 < row.evenness < 1

    def test_evenness_ignores_taxon_omission(self, planar, community_frame):
        kept = planar.summarize(community_frame, classical_quota=10, seed=1)
        omitted = planar.summarize(community_frame, classical_quota=10,
                                   omit_most_common_taxon=True, seed=1)
        assert omitted.evenness == pytest.approx(kept.evenness)
        assert omitted.classical_richness != pytest.approx(kept.classical_richness)

    def test_sites_counted_by_site_id(self, planar, spread_sites_frame):
        """Records of one site at slightly different points are one site."""
        row = planar.summarize(spread_sites_frame)
        assert row.n_sites == 2
        assert row.total_mst == pytest.approx(5.0)
        assert (row.centroid_x, row.centroid_y) == pytest.approx((2.5, 0.0))

    def test_distinct_locations_without_site_column(self, planar, spread_sites_frame):
        assert planar.summarize(spread_sites_frame, site_key=None).n_sites == 4
        no_ids = spread_sites_frame.drop(columns='site_id')
        assert planar.summarize(no_ids).n_sites == 4

    def test_missing_site_column_rejected(self, planar, spread_sites_frame):
        with pytest.raises(InvalidConfigurationError):
            planar.summarize(spread_sites_frame, site_key='locality')

    def test_classical_rarefaction(self, planar, community_frame):
        row = planar.summarize(community_frame, classical_quota=10, seed=1)
        expected = ChaoRarefactionEstimator(n_bootstrap=0).estimate_richness(
            [8, 4, 3, 2, 1, 1], QuotaType.SAMPLE_SIZE, 10
        )
        assert row.classical_richness == pytest.approx(expected.estimate)
        assert row.classical_lower <= row.classical_richness <= row.classical_upper
        assert row.coverage_richness is None

    def test_infeasible_quota_recorded_as_issue(self, planar, community_frame):
        row = planar.summarize(community_frame, classical_quota=10, coverage_quota=0.99, seed=1)
        assert math.isnan(row.coverage_richness)
        assert any('coverage' in issue for issue in row.issues)
        assert not math.isnan(row.classical_richness)

    def test_extrapolation_enabled(self, planar, community_frame):
        row = planar.summarize(community_frame, classical_quota=30, allow_extrapolation=True, seed=1)
        assert row.classical_richness > 6
        assert row.issues == ()

    def test_omit_most_common_taxon(self, planar, community_frame):
        row = planar.summarize(community_frame, classical_quota=10, omit_most_common_taxon=True, seed=1)
        expected = ChaoRarefactionEstimator(n_bootstrap=0).estimate_richness(
            [4, 3, 2, 1, 1], QuotaType.SAMPLE_SIZE, 10
        )
        assert row.classical_richness == pytest.approx(expected.estimate)
        assert row.n_taxa == 6

    def test_incidence_rarefaction(self, planar, community_frame):
        row = planar.summarize(community_frame, collections_key='collection_id',
                               classical_quota=5, seed=2)
        incidence = community_frame.drop_duplicates(['taxon_id', 'collection_id'])
        expected_richness = incidence['taxon_id'].nunique()
        assert row.classical_richness == pytest.approx(expected_richness)

    def test_single_location(self, planar):
        frame = pd.DataFrame({'taxon_id': ['a', 'b', 'a'], 'x': [1.0] * 3, 'y': [2.0] * 3})
        row = planar.summarize(frame)
        assert row.n_sites == 1
        assert math.isnan(row.total_mst)
        assert math.isnan(row.centroid_x)
        assert any('geometry' in issue for issue in row.issues)

    def test_missing_values_ignored(self, planar, community_frame):
        frame = community_frame.copy()
        frame.loc[0, 'taxon_id'] = None
        row = planar.summarize(frame)
        assert row.n_occurrences == 18
        assert any('missing' in issue for issue in row.issues)

    def test_mst_permutation_invariant(self, planar, community_frame):
        shuffled = community_frame.sample(frac=1.0, random_state=3)
        a = planar.summarize(community_frame)
        b = planar.summarize(shuffled)
        assert a.total_mst == pytest.approx(b.total_mst)
        assert a.n_sites == b.n_sites


class TestCollections:
    """Rows for every subsample of a collection."""

    def test_one_row_per_subsample(self, geographic, full_collection):
        rows = geographic.summarize(full_collection, classical_quota=5, seed=4)
        assert len(rows) == len(full_collection)
        for row, sub in zip(rows, full_collection):
            assert row.iteration == sub.iteration
            assert row.n_sites == sub.n_sites
            assert row.n_occurrences == len(sub.records)

    def test_site_count_follows_subsample_sites(self, geographic, sequential):
        records = [
            OccurrenceRecord('Orthis', 's1', 10.0, 10.0),
            OccurrenceRecord('Strophomena', 's1', 10.02, 10.0),
            OccurrenceRecord('Orthis', 's2', 10.5, 10.0),
            OccurrenceRecord('Rafinesquina', 's2', 10.52, 10.0),
        ]
        dataset = OccurrenceDataset(records)
        drawn = RadialSampler(processing=sequential).sample(
            dataset, radius=200.0, site_quota=2, iterations=3,
            output_mode=OutputMode.FULL, seed=2
        )
        assert len(drawn) == 3

        kernel = GeometryKernel()
        for row in geographic.summarize(drawn):
            assert row.n_sites == 2
            assert row.n_occurrences == 4
            assert row.total_mst == pytest.approx(kernel.distance((10.0, 10.0), (10.5, 10.0)))
            assert row.lat_range == pytest.approx(0.0)

    def test_location_only_subsamples_rejected(self, geographic, sequential, grid_dataset):
        locations = RadialSampler(processing=sequential).sample(grid_dataset, 200.0, 4, 3, seed=1)
        with pytest.raises(InvalidConfigurationError):
            geographic.summarize(locations)

    def test_parallel_rows_match_sequential(self, geographic, full_collection):
        threaded = DiversitySummarizer(
            processing=ProcessingConfig(max_workers=3, parallel_backend='thread', chunk_size=2),
            n_bootstrap=20
        )
        a = geographic.summarize(full_collection, classical_quota=6, coverage_quota=0.5, seed=8)
        b = threaded.summarize(full_collection, classical_quota=6, coverage_quota=0.5, seed=8)
        pd.testing.assert_frame_equal(summaries_to_frame(a), summaries_to_frame(b))

    def test_cancelled_before_start(self, geographic, full_collection):
        cancel = threading.Event()
        cancel.set()
        assert geographic.summarize(full_collection, cancel_event=cancel) == []

    def test_sequence_of_frames(self, planar, community_frame):
        rows = planar.summarize([community_frame, community_frame.head(5)])
        assert [r.n_occurrences for r in rows] == [19, 5]
        assert all(r.iteration is None for r in rows)

    @pytest.mark.parametrize('kwargs', [
        {'classical_quota': 0},
        {'coverage_quota': 1.2},
        {'coordinate_keys': ('x',)},
        {'taxon_key': 'genus'},
        {'seed': -1},
    ])
    def test_invalid_arguments(self, planar, community_frame, kwargs):
        with pytest.raises(InvalidConfigurationError):
            planar.summarize(community_frame, **kwargs)

    def test_frame_output(self, planar, community_frame):
        frame = summaries_to_frame([planar.summarize(community_frame, coverage_quota=0.99)])
        assert frame.loc[0, 'n_taxa'] == 6
        assert 'coverage rarefaction' in frame.loc[0, 'issues']

    def test_functional_shortcut(self, sequential, community_frame):
        row = sdsumry(community_frame, crs='planar', processing=sequential)
        assert row.n_sites == 4


def test_taxon_frequency_order(community_frame):
    from geosubsample.diversity import taxon_frequencies
    sample = taxon_frequencies(community_frame, 'taxon_id')
    assert isinstance(sample, FrequencySample)
    assert sample.frequencies.tolist() == [8, 4, 3, 2, 1, 1]
    assert np.sum(sample.frequencies) == 19
