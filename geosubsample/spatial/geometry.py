"""Geometric primitives shared by the samplers and the summariser.

Distances between sites are great-circle (haversine on a sphere), geodesic
(WGS84 ellipsoid) or Euclidean, depending on the dataset's coordinate system
and the chosen metric. Geographic distances are in kilometres.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

import numpy as np
from pyproj import Geod
from scipy.spatial.distance import cdist

from ..abstractions.types import CoordinateSystem, OccurrenceDataset, Site
from ..exceptions import DegenerateInputError, InvalidConfigurationError

EARTH_RADIUS_KM = 6371.0

# Rows per block when a full n x n matrix would be too large to hold
BLOCK_ROWS = 512

PointsLike = Union[np.ndarray, Sequence[Site], Sequence[Tuple[float, float]]]


class DistanceMetric(Enum):
    """Available distance metrics."""
    GREAT_CIRCLE = "great_circle"
    GEODESIC = "geodesic"
    EUCLIDEAN = "euclidean"


@dataclass(frozen=True)
class SpanningTree:
    """Minimum spanning tree over a point set.

    ``edges`` holds (parent, child, length) in the order Prim's algorithm
    attached them and ``order`` the attachment order of the vertices.
    """
    edges: Tuple[Tuple[int, int, float], ...]
    order: Tuple[int, ...]
    total_length: float

    @property
    def n_vertices(self) -> int:
        return len(self.order)


def haversine_km(lon1, lat1, lon2, lat2) -> np.ndarray:
    """Vectorised haversine distance in kilometres (inputs in degrees)."""
    lon1, lat1, lon2, lat2 = (np.radians(np.asarray(v, dtype=float))
                              for v in (lon1, lat1, lon2, lat2))
    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = np.sin(dlat / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlon / 2) ** 2
    c = 2 * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))
    return c * EARTH_RADIUS_KM


def as_points(points: PointsLike) -> np.ndarray:
    """Coerce sites or coordinate pairs to an (n, 2) float array."""
    if isinstance(points, np.ndarray):
        arr = np.asarray(points, dtype=float)
    else:
        items = list(points)
        if items and isinstance(items[0], Site):
            arr = np.array([s.coordinates for s in items], dtype=float)
        else:
            arr = np.array(items, dtype=float)
    return arr.reshape(-1, 2)


def n_distinct(points: PointsLike) -> int:
    """Number of distinct coordinate pairs."""
    arr = as_points(points)
    if len(arr) == 0:
        return 0
    return len(np.unique(arr, axis=0))


def prim_spanning_tree(dist: np.ndarray, start: int = 0) -> SpanningTree:
    """Prim's algorithm over a dense distance matrix.

    Ties are broken by input order (lowest index wins). Zero-length edges
    between coincident points are kept.
    """
    n = dist.shape[0]
    if n == 0:
        return SpanningTree(edges=(), order=(), total_length=0.0)

    in_tree = np.zeros(n, dtype=bool)
    in_tree[start] = True
    best = dist[start].astype(float).copy()
    parent = np.full(n, start, dtype=int)

    edges = []
    order = [start]
    for _ in range(n - 1):
        candidates = np.where(in_tree, np.inf, best)
        j = int(np.argmin(candidates))
        edges.append((int(parent[j]), j, float(best[j])))
        in_tree[j] = True
        order.append(j)

        closer = (~in_tree) & (dist[j] < best)
        best[closer] = dist[j][closer]
        parent[closer] = j

    total = math.fsum(w for _, _, w in edges)
    return SpanningTree(edges=tuple(edges), order=tuple(order), total_length=total)


class GeometryKernel:
    """Distance, spanning tree and centroid computations for one coordinate system."""

    def __init__(self,
                 crs: CoordinateSystem = CoordinateSystem.GEOGRAPHIC,
                 metric: Optional[DistanceMetric] = None):
        """Initialize kernel.

        Args:
            crs: Coordinate system of the points the kernel will receive
            metric: Distance metric; great-circle for geographic data and
                Euclidean for planar data when omitted

        Raises:
            InvalidConfigurationError: for a spherical metric on planar data
        """
        self.crs = CoordinateSystem(crs)
        if metric is None:
            metric = DistanceMetric.GREAT_CIRCLE if self.crs.is_geographic else DistanceMetric.EUCLIDEAN
        self.metric = DistanceMetric(metric)

        if self.metric is not DistanceMetric.EUCLIDEAN and not self.crs.is_geographic:
            raise InvalidConfigurationError(
                f"{self.metric.value} distances need geographic coordinates, "
                f"dataset is {self.crs.value}"
            )

        self._geod = Geod(ellps='WGS84') if self.metric is DistanceMetric.GEODESIC else None

    @classmethod
    def for_dataset(cls, dataset: OccurrenceDataset,
                    metric: Optional[DistanceMetric] = None) -> 'GeometryKernel':
        return cls(crs=dataset.crs, metric=metric)

    @property
    def units(self) -> str:
        return "km" if self.crs.is_geographic else "crs units"

    def __getstate__(self):
        # pyproj.Geod is rebuilt on unpickling
        state = self.__dict__.copy()
        state['_geod'] = None
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        if self.metric is DistanceMetric.GEODESIC:
            self._geod = Geod(ellps='WGS84')

    def distance(self, p1, p2) -> float:
        """Distance between two points (Sites or coordinate pairs)."""
        a = as_points([p1.coordinates if isinstance(p1, Site) else p1])
        b = as_points([p2.coordinates if isinstance(p2, Site) else p2])
        return float(self.cross_distance_matrix(a, b)[0, 0])

    def cross_distance_matrix(self, a: PointsLike, b: PointsLike) -> np.ndarray:
        """Distances between every point of ``a`` (rows) and ``b`` (columns)."""
        a = as_points(a)
        b = as_points(b)

        if self.metric is DistanceMetric.EUCLIDEAN:
            return cdist(a, b)

        lon1 = a[:, 0][:, None]
        lat1 = a[:, 1][:, None]
        lon2 = b[:, 0][None, :]
        lat2 = b[:, 1][None, :]

        if self.metric is DistanceMetric.GREAT_CIRCLE:
            return haversine_km(lon1, lat1, lon2, lat2)

        lon1, lon2 = np.broadcast_arrays(lon1, lon2)
        lat1, lat2 = np.broadcast_arrays(lat1, lat2)
        _, _, meters = self._geod.inv(lon1.ravel(), lat1.ravel(), lon2.ravel(), lat2.ravel())
        return np.asarray(meters, dtype=float).reshape(len(a), len(b)) / 1000.0

    def distances_from(self, point, points: PointsLike) -> np.ndarray:
        """Vector of distances from one point to each of ``points``."""
        origin = point.coordinates if isinstance(point, Site) else point
        return self.cross_distance_matrix(as_points([origin]), points)[0]

    def pairwise_distance_matrix(self, points: PointsLike) -> np.ndarray:
        """Symmetric distance matrix with a zero diagonal."""
        pts = as_points(points)
        dist = self.cross_distance_matrix(pts, pts)
        # enforce exact symmetry for the ellipsoidal solver
        dist = np.minimum(dist, dist.T)
        np.fill_diagonal(dist, 0.0)
        return dist

    def neighbour_counts(self, points: PointsLike, radius: float) -> np.ndarray:
        """For each point, how many points (itself included) lie within ``radius``."""
        pts = as_points(points)
        counts = np.zeros(len(pts), dtype=int)
        for start in range(0, len(pts), BLOCK_ROWS):
            block = self.cross_distance_matrix(pts[start:start + BLOCK_ROWS], pts)
            counts[start:start + BLOCK_ROWS] = (block <= radius).sum(axis=1)
        return counts

    def minimum_spanning_tree(self, points: PointsLike) -> SpanningTree:
        """Minimum spanning tree of the complete distance graph.

        Raises:
            DegenerateInputError: for fewer than 2 distinct points
        """
        pts = as_points(points)
        if n_distinct(pts) < 2:
            raise DegenerateInputError(
                f"Spanning tree needs at least 2 distinct points, got {n_distinct(pts)}"
            )
        return prim_spanning_tree(self.pairwise_distance_matrix(pts))

    def centroid(self, points: PointsLike) -> Tuple[float, float]:
        """Mean position; spherical mean for geographic coordinates.

        Raises:
            DegenerateInputError: for fewer than 2 distinct points, or points
                whose spherical mean is undefined (e.g. antipodes)
        """
        pts = as_points(points)
        if n_distinct(pts) < 2:
            raise DegenerateInputError(
                f"Centroid needs at least 2 distinct points, got {n_distinct(pts)}"
            )

        if not self.crs.is_geographic:
            mean = pts.mean(axis=0)
            return float(mean[0]), float(mean[1])

        lon = np.radians(pts[:, 0])
        lat = np.radians(pts[:, 1])
        xyz = np.column_stack([
            np.cos(lat) * np.cos(lon),
            np.cos(lat) * np.sin(lon),
            np.sin(lat),
        ]).mean(axis=0)

        if np.linalg.norm(xyz) < 1e-12:
            raise DegenerateInputError("Spherical centroid is undefined for these points")

        c_lon = math.degrees(math.atan2(xyz[1], xyz[0]))
        c_lat = math.degrees(math.atan2(xyz[2], math.hypot(xyz[0], xyz[1])))
        return c_lon, c_lat

    def diameter(self, points: PointsLike) -> float:
        """Largest pairwise distance (great-circle diameter for geographic data)."""
        pts = as_points(points)
        if len(pts) < 2:
            return 0.0
        return float(self.pairwise_distance_matrix(pts).max())

    def mean_pairwise_distance(self, points: PointsLike) -> float:
        """Mean distance over all unordered pairs."""
        pts = as_points(points)
        if len(pts) < 2:
            return 0.0
        dist = self.pairwise_distance_matrix(pts)
        upper = dist[np.triu_indices(len(pts), k=1)]
        return float(upper.mean())
