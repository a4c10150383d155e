"""Tests for latitude band subsampling (bandit)."""

import numpy as np
import pytest

from geosubsample.abstractions.types import OccurrenceDataset, OccurrenceRecord
from geosubsample.exceptions import InvalidConfigurationError
from geosubsample.sampling import BandSampler, assign_bands, bandit, latitude_bands


@pytest.fixture
def sampler(sequential):
    return BandSampler(processing=sequential)


class TestLatitudeBands:
    """Partition of the latitude axis."""

    def test_signed_partition(self):
        bands = latitude_bands(20)
        assert len(bands) == 9
        assert bands[0].label == '[-90, -70)'
        assert bands[-1].label == '[70, 90]'
        assert bands[-1].contains(90.0)
        assert not bands[0].contains(-70.0)

    def test_narrow_last_band(self):
        bands = latitude_bands(25)
        assert len(bands) == 8
        assert (bands[-1].lower, bands[-1].upper) == (85.0, 90.0)

    def test_absolute_partition(self):
        bands = latitude_bands(20, use_absolute_latitude=True)
        assert [b.label for b in bands] == ['[0, 20)', '[20, 40)', '[40, 60)', '[60, 80)', '[80, 90]']

    def test_assignment_is_left_closed(self):
        idx = assign_bands(np.array([-90.0, 10.0, 29.999, 30.0, 90.0]), 20)
        assert idx.tolist() == [0, 5, 5, 6, 8]

    def test_every_latitude_in_exactly_one_band(self):
        bands = latitude_bands(15)
        for lat in np.linspace(-90, 90, 181):
            assert sum(b.contains(lat) for b in bands) == 1

    @pytest.mark.parametrize('width', [0.1, 0.3, 0.7, 1.1, 2.2, 3.3, 7.7, 15])
    @pytest.mark.parametrize('absolute', [False, True])
    def test_assigned_band_contains_latitude(self, width, absolute):
        """Fractional widths put float edges right on grid latitudes."""
        bands = latitude_bands(width, use_absolute_latitude=absolute)
        latitudes = np.linspace(-90, 90, 1801)
        idx = assign_bands(latitudes, width, use_absolute_latitude=absolute)
        folded = np.abs(latitudes) if absolute else latitudes
        for lat, k in zip(folded, idx):
            assert bands[k].contains(lat), (lat, bands[k].label)
        assert bands[-1].upper == 90.0


class TestBandSampler:
    """bandit behaviour on 11 + 15 sites."""

    def test_band_below_quota_yields_nothing(self, sampler, band_dataset):
        """A band with 11 sites cannot supply a quota of 12."""
        result = sampler.sample(band_dataset, band_width=20, site_quota=12,
                                iterations_per_band=10, seed=1)

        assert list(result) == ['[30, 50)']
        collection = result['[30, 50)']
        assert collection.n_requested == 10
        for sub in collection:
            assert sub.n_sites == 12
            assert len(set(sub.site_ids)) == 12
            assert all(str(s).startswith('mid') for s in sub.site_ids)

    def test_bands_ordered_south_to_north(self, sampler, band_dataset):
        result = sampler.sample(band_dataset, band_width=20, site_quota=11,
                                iterations_per_band=3, seed=1)
        assert list(result) == ['[10, 30)', '[30, 50)']

        low = result['[10, 30)']
        assert low.metadata['band_lower'] == 10.0
        assert low.metadata['band_upper'] == 30.0
        assert low.metadata['n_band_sites'] == 11
        for sub in low:
            assert all(10.0 <= site.y < 30.0 for site in sub.sites)

    def test_absolute_latitude_folds_hemispheres(self, sampler):
        records = [OccurrenceRecord('Orthis', f"n{k}", float(k), 12.0 + k) for k in range(3)]
        records += [OccurrenceRecord('Orthis', f"s{k}", float(k), -12.0 - k) for k in range(3)]
        dataset = OccurrenceDataset(records)

        signed = sampler.sample(dataset, 20, 4, 2, seed=0)
        folded = sampler.sample(dataset, 20, 4, 2, use_absolute_latitude=True, seed=0)

        assert signed == {}
        assert list(folded) == ['[0, 20)']
        assert folded['[0, 20)'].metadata['n_band_sites'] == 6

    def test_planar_dataset_rejected(self, sampler, chain_dataset):
        with pytest.raises(InvalidConfigurationError):
            sampler.sample(chain_dataset, 20, 3, 5)

    @pytest.mark.parametrize('band_width', [0, -10, 200])
    def test_invalid_band_width(self, sampler, band_dataset, band_width):
        with pytest.raises(InvalidConfigurationError):
            sampler.sample(band_dataset, band_width, 3, 5)

    def test_functional_shortcut(self, sequential, band_dataset):
        result = bandit(band_dataset, 20, 12, 4, seed=6, processing=sequential)
        assert list(result) == ['[30, 50)']
        assert result['[30, 50)'].metadata['sampler'] == 'bandit'
