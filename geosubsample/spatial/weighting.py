"""Distance-decay inclusion probabilities for weighted site draws."""

from enum import Enum
from typing import Optional, Sequence

import numpy as np

from ..abstractions.types import Site
from ..exceptions import InvalidConfigurationError
from .geometry import GeometryKernel


class WeightingScheme(Enum):
    """How companion sites are weighted relative to the seed."""
    UNIFORM = "uniform"
    INVERSE_DISTANCE = "inverse_distance"


class SiteWeighter:
    """Convert distance from a reference site into inclusion probability.

    With ``INVERSE_DISTANCE`` the mass of a site at distance d is
    ``d ** -power`` (inverse-square by default), so closer sites are favoured.
    Sites coincident with the reference but carrying another site id have
    their distance floored at half the smallest positive candidate distance,
    which keeps their mass finite and larger than any other candidate's.
    """

    def __init__(self,
                 scheme: WeightingScheme = WeightingScheme.INVERSE_DISTANCE,
                 power: float = 2.0,
                 kernel: Optional[GeometryKernel] = None):
        """Initialize weighter.

        Args:
            scheme: Weighting scheme
            power: Decay exponent for inverse-distance weighting
            kernel: Geometry kernel for ``weight`` on Site objects
        """
        self.scheme = WeightingScheme(scheme)
        if power <= 0:
            raise InvalidConfigurationError(f"Weighting power must be positive, got {power}")
        self.power = float(power)
        self.kernel = kernel or GeometryKernel()

    @property
    def is_uniform(self) -> bool:
        return self.scheme is WeightingScheme.UNIFORM

    def mass(self, distances: np.ndarray, floor: Optional[float] = None) -> np.ndarray:
        """Unnormalised mass for each distance, non-increasing in distance."""
        d = np.asarray(distances, dtype=float)
        if self.is_uniform or d.size == 0:
            return np.ones_like(d)

        if floor is None:
            positive = d[d > 0]
            floor = positive.min() / 2.0 if positive.size else 1.0
        return np.maximum(d, floor) ** -self.power

    def weight(self, site: Site, reference_site: Site,
               candidates: Optional[Sequence[Site]] = None) -> float:
        """Unnormalised mass of ``site`` relative to ``reference_site``.

        Given the candidate pool, the distance floor is the one
        ``probabilities`` applies to that pool, so a coincident site gets the
        same finite mass it would get in a draw. Without a pool a coincident
        site has unbounded mass and ``inf`` is returned.
        """
        if self.is_uniform:
            return 1.0
        d = self.kernel.distance(site, reference_site)
        if candidates:
            pool = self.kernel.distances_from(reference_site, [c.coordinates for c in candidates])
            return float(self.mass(np.append(pool, d))[-1])
        if d == 0:
            return float('inf')
        return float(d ** -self.power)

    def probabilities(self, distances: np.ndarray) -> np.ndarray:
        """Normalised probability distribution over a candidate pool."""
        d = np.asarray(distances, dtype=float)
        if d.size == 0:
            return d
        mass = self.mass(d)
        return mass / mass.sum()
