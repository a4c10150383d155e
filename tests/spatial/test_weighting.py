"""Tests for distance-decay site weighting."""

import numpy as np
import pytest

from geosubsample.abstractions.types import CoordinateSystem, Site
from geosubsample.exceptions import InvalidConfigurationError
from geosubsample.spatial import GeometryKernel, SiteWeighter, WeightingScheme


@pytest.fixture
def weighter():
    return SiteWeighter(kernel=GeometryKernel(CoordinateSystem.PLANAR))


class TestSiteWeighter:
    """Inverse-distance and uniform weighting."""

    def test_inverse_square_probabilities(self, weighter):
        p = weighter.probabilities(np.array([1.0, 2.0]))
        assert p.tolist() == pytest.approx([0.8, 0.2])

    def test_probabilities_non_increasing_in_distance(self, weighter):
        d = np.array([0.5, 1.0, 2.0, 2.0, 7.5, 30.0])
        p = weighter.probabilities(d)
        assert p.sum() == pytest.approx(1.0)
        assert np.all(np.diff(p) <= 0)

    def test_zero_distance_floored(self, weighter):
        """Coincident companions get finite, dominant mass."""
        p = weighter.probabilities(np.array([0.0, 2.0, 4.0]))
        assert np.all(np.isfinite(p))
        assert p.tolist() == pytest.approx(np.array([1.0, 0.25, 0.0625]) / 1.3125)

    def test_uniform_scheme(self):
        uniform = SiteWeighter(WeightingScheme.UNIFORM)
        assert uniform.is_uniform
        assert uniform.probabilities(np.array([1.0, 5.0, 50.0])).tolist() == pytest.approx([1 / 3] * 3)
        assert uniform.weight(Site('a', 0.0, 0.0), Site('b', 50.0, 0.0)) == 1.0

    def test_weight_monotone(self, weighter):
        ref = Site('ref', 0.0, 0.0)
        near = weighter.weight(Site('a', 1.0, 0.0), ref)
        far = weighter.weight(Site('b', 3.0, 0.0), ref)
        assert near == pytest.approx(1.0)
        assert far == pytest.approx(1 / 9)
        assert weighter.weight(Site('c', 0.0, 0.0), ref) == float('inf')

    def test_coincident_weight_matches_pool_probabilities(self, weighter):
        """Against a pool, a coincident site gets the floored mass used in draws."""
        ref = Site('ref', 0.0, 0.0)
        pool = [Site('c0', 0.0, 0.0), Site('a', 2.0, 0.0), Site('b', 0.0, 4.0)]
        masses = [weighter.weight(s, ref, candidates=pool) for s in pool]
        assert masses == pytest.approx([1.0, 0.25, 0.0625])
        p = weighter.probabilities(np.array([0.0, 2.0, 4.0]))
        assert masses[0] / masses[1] == pytest.approx(p[0] / p[1])

    def test_custom_power(self):
        cubic = SiteWeighter(power=3.0, kernel=GeometryKernel(CoordinateSystem.PLANAR))
        assert cubic.mass(np.array([2.0])).tolist() == pytest.approx([0.125])

    def test_non_positive_power_rejected(self):
        with pytest.raises(InvalidConfigurationError):
            SiteWeighter(power=0)
