"""Tests for distances, spanning trees and centroids."""

import itertools
import math
import pickle

import numpy as np
import pytest

from geosubsample.abstractions.types import CoordinateSystem, Site
from geosubsample.exceptions import DegenerateInputError, InvalidConfigurationError
from geosubsample.spatial import (
    DistanceMetric, GeometryKernel, EARTH_RADIUS_KM, haversine_km, n_distinct, prim_spanning_tree
)

ONE_DEGREE_KM = 2 * math.pi * EARTH_RADIUS_KM / 360


@pytest.fixture
def sphere():
    return GeometryKernel(CoordinateSystem.GEOGRAPHIC)


@pytest.fixture
def plane():
    return GeometryKernel(CoordinateSystem.PLANAR)


class TestDistances:
    """Point-to-point and matrix distances."""

    def test_one_degree_of_latitude(self, sphere):
        """A degree along a meridian is 1/360 of the sphere's circumference."""
        assert sphere.distance((0.0, 0.0), (0.0, 1.0)) == pytest.approx(ONE_DEGREE_KM)

    def test_haversine_vectorised(self):
        d = haversine_km([0.0, 0.0], [0.0, 0.0], [0.0, 180.0], [90.0, 0.0])
        assert d[0] == pytest.approx(math.pi * EARTH_RADIUS_KM / 2)
        assert d[1] == pytest.approx(math.pi * EARTH_RADIUS_KM)

    def test_distance_accepts_sites(self, sphere):
        a = Site('a', 10.0, 45.0)
        b = Site('b', 11.0, 45.0)
        assert sphere.distance(a, b) == pytest.approx(sphere.distance((10.0, 45.0), (11.0, 45.0)))

    def test_zero_iff_coincident(self, sphere):
        assert sphere.distance((5.0, 5.0), (5.0, 5.0)) == 0.0
        assert sphere.distance((5.0, 5.0), (5.0, 5.0001)) > 0.0

    def test_euclidean_on_planar(self, plane):
        assert plane.metric is DistanceMetric.EUCLIDEAN
        assert plane.distance((0.0, 0.0), (3.0, 4.0)) == pytest.approx(5.0)

    def test_geodesic_close_to_great_circle(self):
        geodesic = GeometryKernel(metric=DistanceMetric.GEODESIC)
        great_circle = GeometryKernel(metric='great_circle')
        d1 = geodesic.distance((0.0, 10.0), (20.0, 30.0))
        d2 = great_circle.distance((0.0, 10.0), (20.0, 30.0))
        assert d1 == pytest.approx(d2, rel=0.01)

    def test_spherical_metric_on_planar_rejected(self):
        with pytest.raises(InvalidConfigurationError):
            GeometryKernel(CoordinateSystem.PLANAR, DistanceMetric.GREAT_CIRCLE)

    def test_pairwise_matrix_symmetric_with_zero_diagonal(self, sphere):
        pts = np.array([[0.0, 0.0], [10.0, 5.0], [-20.0, 40.0], [100.0, -30.0]])
        dist = sphere.pairwise_distance_matrix(pts)
        assert dist.shape == (4, 4)
        assert np.array_equal(dist, dist.T)
        assert np.all(np.diag(dist) == 0.0)
        assert np.all(dist[~np.eye(4, dtype=bool)] > 0)

    def test_distances_from(self, plane):
        d = plane.distances_from((0.0, 0.0), [(1.0, 0.0), (0.0, 2.0), (3.0, 4.0)])
        assert d.tolist() == pytest.approx([1.0, 2.0, 5.0])

    def test_neighbour_counts_include_self(self, plane):
        pts = [(0.0, 0.0), (1.0, 0.0), (2.0, 0.0), (10.0, 0.0)]
        assert plane.neighbour_counts(pts, 1.0).tolist() == [2, 3, 2, 1]

    def test_geodesic_kernel_survives_pickling(self):
        kernel = GeometryKernel(metric=DistanceMetric.GEODESIC)
        clone = pickle.loads(pickle.dumps(kernel))
        assert clone.distance((0.0, 0.0), (1.0, 1.0)) == pytest.approx(
            kernel.distance((0.0, 0.0), (1.0, 1.0))
        )


class TestSpanningTree:
    """Minimum spanning tree construction."""

    def test_line_total_length(self, plane):
        tree = plane.minimum_spanning_tree([(0.0, 0.0), (3.0, 0.0), (1.0, 0.0)])
        assert tree.total_length == pytest.approx(3.0)
        assert len(tree.edges) == 2
        assert tree.n_vertices == 3

    def test_permutation_invariant(self, sphere):
        pts = [(0.0, 0.0), (5.0, 1.0), (2.0, 7.0), (-3.0, 4.0), (8.0, -2.0)]
        reference = sphere.minimum_spanning_tree(pts).total_length
        for perm in itertools.permutations(pts):
            assert sphere.minimum_spanning_tree(list(perm)).total_length == pytest.approx(reference)

    def test_coincident_points_keep_zero_edges(self, plane):
        tree = plane.minimum_spanning_tree([(0.0, 0.0), (0.0, 0.0), (1.0, 0.0)])
        assert len(tree.edges) == 2
        assert sorted(w for _, _, w in tree.edges) == [0.0, 1.0]
        assert tree.total_length == pytest.approx(1.0)

    def test_ties_resolved_by_input_order(self, plane):
        pts = [(0.0, 0.0), (1.0, 0.0), (0.0, 1.0), (1.0, 1.0)]
        tree = prim_spanning_tree(plane.pairwise_distance_matrix(pts))
        assert tree.order[:2] == (0, 1)

    def test_fewer_than_two_distinct_points(self, plane):
        with pytest.raises(DegenerateInputError):
            plane.minimum_spanning_tree([(2.0, 2.0), (2.0, 2.0)])
        assert n_distinct([(2.0, 2.0), (2.0, 2.0)]) == 1


class TestCentroid:
    """Planar and spherical means."""

    def test_planar_mean(self, plane):
        assert plane.centroid([(0.0, 0.0), (2.0, 0.0), (1.0, 3.0)]) == pytest.approx((1.0, 1.0))

    def test_spherical_mean_on_equator(self, sphere):
        assert sphere.centroid([(10.0, 0.0), (20.0, 0.0)]) == pytest.approx((15.0, 0.0))

    def test_spherical_mean_across_dateline(self, sphere):
        lon, lat = sphere.centroid([(170.0, 0.0), (-170.0, 0.0)])
        assert abs(lon) == pytest.approx(180.0)
        assert lat == pytest.approx(0.0, abs=1e-9)

    def test_degenerate_inputs(self, sphere):
        with pytest.raises(DegenerateInputError):
            sphere.centroid([(1.0, 1.0)])
        with pytest.raises(DegenerateInputError):
            sphere.centroid([(0.0, 0.0), (180.0, 0.0)])


class TestDispersion:
    """Diameter and mean pairwise distance."""

    def test_diameter_and_mean(self, plane):
        pts = [(0.0, 0.0), (3.0, 0.0), (0.0, 4.0)]
        assert plane.diameter(pts) == pytest.approx(5.0)
        assert plane.mean_pairwise_distance(pts) == pytest.approx(4.0)

    def test_single_point(self, plane):
        assert plane.diameter([(1.0, 1.0)]) == 0.0
        assert plane.mean_pairwise_distance([(1.0, 1.0)]) == 0.0
