"""Sample-size and coverage-based rarefaction of taxonomic richness.

Default implementation of the richness estimator consumed by the diversity
summary. Follows the interpolation/extrapolation framework of Chao & Jost
(2012) and Chao et al. (2014), as popularised by iNEXT:

- interpolated richness and coverage are hypergeometric expectations;
- extrapolation uses the Chao1 (abundance) or Chao2 (incidence) estimate of
  undetected richness and is limited to twice the observed sample size;
- 95% intervals come from a bootstrap over the estimated assemblage.

Abundance data count occurrences per taxon. Incidence data count, per taxon,
how many of ``n_units`` sampling units (collections) it appears in.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple, Union

import numpy as np
from scipy.special import gammaln
from scipy.stats import norm

from ..abstractions.types import FrequencyType, QuotaType, RarefactionEstimate
from ..config import require_count, require_fraction, resolve_enum
from ..exceptions import InfeasibleRarefactionError, InvalidConfigurationError
from ..infrastructure.logging import get_logger

logger = get_logger(__name__)

# Extrapolation is reliable up to this multiple of the observed sample size
MAX_EXTRAPOLATION_FACTOR = 2


@dataclass(frozen=True)
class FrequencySample:
    """Per-taxon frequencies together with the sample size they refer to."""
    frequencies: np.ndarray
    size: int
    kind: FrequencyType = FrequencyType.ABUNDANCE

    @classmethod
    def from_abundances(cls, counts: Sequence[int]) -> 'FrequencySample':
        freqs = _positive_counts(counts)
        return cls(freqs, int(freqs.sum()), FrequencyType.ABUNDANCE)

    @classmethod
    def from_incidence(cls, frequencies: Sequence[int], n_units: int) -> 'FrequencySample':
        freqs = _positive_counts(frequencies)
        n_units = require_count('n_units', n_units)
        if freqs.size and freqs.max() > n_units:
            raise InvalidConfigurationError("Incidence frequency exceeds the number of sampling units")
        return cls(freqs, n_units, FrequencyType.INCIDENCE)

    @property
    def total(self) -> int:
        """Sum of frequencies (n for abundance, U for incidence)."""
        return int(self.frequencies.sum())

    @property
    def s_obs(self) -> int:
        return int(self.frequencies.size)

    @property
    def singletons(self) -> int:
        return int(np.sum(self.frequencies == 1))

    @property
    def doubletons(self) -> int:
        return int(np.sum(self.frequencies == 2))


def _positive_counts(values: Sequence[int]) -> np.ndarray:
    arr = np.asarray(values, dtype=float).ravel()
    if np.any(arr < 0) or np.any(arr != np.round(arr)):
        raise InvalidConfigurationError("Frequencies must be non-negative integers")
    return arr[arr > 0].astype(np.int64)


def _lchoose(n, k) -> np.ndarray:
    return gammaln(n + 1) - gammaln(k + 1) - gammaln(n - k + 1)


def undetected_richness(sample: FrequencySample) -> float:
    """Chao1 / Chao2 estimate of the number of undetected taxa."""
    n = sample.size
    f1, f2 = sample.singletons, sample.doubletons
    if n <= 0:
        return 0.0
    if f2 > 0:
        return (n - 1) / n * f1 ** 2 / (2 * f2)
    return (n - 1) / n * f1 * (f1 - 1) / 2


def _coverage_ratio(sample: FrequencySample) -> float:
    """Share of singleton mass still undetected after one more draw."""
    n = sample.size
    f1, f2 = sample.singletons, sample.doubletons
    if f2 > 0:
        return (n - 1) * f1 / ((n - 1) * f1 + 2 * f2)
    if f1 > 0:
        return (n - 1) * (f1 - 1) / ((n - 1) * (f1 - 1) + 2)
    return 1.0


def sample_coverage(sample: FrequencySample) -> float:
    """Estimated coverage of the observed sample (Good-Turing, Chao & Jost)."""
    if sample.total == 0:
        return 0.0
    return 1.0 - sample.singletons / sample.total * _coverage_ratio(sample)


def pielou_evenness(frequencies: Sequence[int]) -> float:
    """Pielou's J: Shannon entropy divided by its maximum, NaN below 2 taxa."""
    freqs = np.asarray(frequencies, dtype=float)
    freqs = freqs[freqs > 0]
    if freqs.size < 2:
        return float('nan')
    p = freqs / freqs.sum()
    return float(-np.sum(p * np.log(p)) / np.log(freqs.size))


def _interpolated_richness(sample: FrequencySample, m: int) -> float:
    if m <= 0:
        return 0.0
    if m >= sample.size:
        return float(sample.s_obs)
    n = sample.size
    x = sample.frequencies
    terms = np.zeros(x.size)
    ok = (n - x) >= m
    terms[ok] = np.exp(_lchoose(n - x[ok], m) - _lchoose(n, m))
    return float(np.sum(1.0 - terms))


def _interpolated_coverage(sample: FrequencySample, m: int) -> float:
    if m <= 0:
        return 0.0
    if m >= sample.size:
        return sample_coverage(sample)
    n = sample.size
    x = sample.frequencies
    terms = np.zeros(x.size)
    ok = (n - x) >= m
    terms[ok] = np.exp(_lchoose(n - x[ok], m) - _lchoose(n - 1, m))
    return float(1.0 - np.sum(x / sample.total * terms))


def richness_at(sample: FrequencySample, m: float) -> float:
    """Expected richness at sample size ``m``.

    Fractional sizes inside the observed range are linearly interpolated
    between neighbouring integers.
    """
    n = sample.size
    if m <= n:
        lo = int(np.floor(m))
        frac = m - lo
        s_lo = _interpolated_richness(sample, lo)
        if frac == 0:
            return s_lo
        return s_lo + frac * (_interpolated_richness(sample, lo + 1) - s_lo)

    f0 = undetected_richness(sample)
    f1 = sample.singletons
    if f0 <= 0 or f1 == 0:
        return float(sample.s_obs)
    extra = m - n
    return float(sample.s_obs + f0 * (1 - (1 - f1 / (n * f0 + f1)) ** extra))


def coverage_at(sample: FrequencySample, m: float) -> float:
    """Expected coverage at sample size ``m``."""
    n = sample.size
    if m <= n:
        lo = int(np.floor(m))
        frac = m - lo
        c_lo = _interpolated_coverage(sample, lo)
        if frac == 0:
            return c_lo
        return c_lo + frac * (_interpolated_coverage(sample, lo + 1) - c_lo)

    extra = m - n
    return float(1.0 - sample.singletons / sample.total * _coverage_ratio(sample) ** (extra + 1))


def size_for_coverage(sample: FrequencySample, target: float,
                      allow_extrapolation: bool = False) -> Tuple[float, bool]:
    """Sample size at which expected coverage reaches ``target``.

    Returns:
        (sample size, whether it lies beyond the observed sample)

    Raises:
        InfeasibleRarefactionError: if the target needs extrapolation that is
            disabled or would exceed twice the observed sample size
    """
    observed = sample_coverage(sample)
    n = sample.size

    if target <= observed:
        coverages = np.array([_interpolated_coverage(sample, m) for m in range(1, n + 1)])
        k = int(np.argmax(coverages >= target - 1e-12))
        c_hi = coverages[k]
        c_lo = coverages[k - 1] if k > 0 else 0.0
        frac = (target - c_lo) / (c_hi - c_lo) if c_hi > c_lo else 1.0
        return k + min(max(frac, 0.0), 1.0), False

    if not allow_extrapolation:
        raise InfeasibleRarefactionError(
            f"Coverage quota {target:g} exceeds observed coverage {observed:.4f}"
        )

    ratio = _coverage_ratio(sample)
    f1 = sample.singletons
    if target >= 1.0 or f1 == 0 or not 0 < ratio < 1:
        raise InfeasibleRarefactionError(f"Coverage {target:g} is not reachable by extrapolation")

    extra = np.log((1 - target) * sample.total / f1) / np.log(ratio) - 1
    if extra > (MAX_EXTRAPOLATION_FACTOR - 1) * n:
        raise InfeasibleRarefactionError(
            f"Coverage quota {target:g} needs more than {MAX_EXTRAPOLATION_FACTOR}x the observed sample"
        )
    return n + max(float(extra), 0.0), True


def bootstrap_assemblage(sample: FrequencySample) -> np.ndarray:
    """Detection probabilities of the estimated assemblage, undetected taxa included."""
    n = sample.size
    x = sample.frequencies.astype(float)
    f0 = undetected_richness(sample)
    f1 = sample.singletons

    scale = n * f0 / (n * f0 + f1) if f1 > 0 else 1.0
    a = f1 / n * scale
    b = float(np.sum(x / n * (1 - x / n) ** n))
    w = a / b if (f0 > 0 and b > 0) else 0.0

    detected = x / n * (1 - w * (1 - x / n) ** n)
    n_unseen = int(np.ceil(f0))
    unseen = np.full(n_unseen, a / n_unseen) if n_unseen > 0 and a > 0 else np.zeros(0)
    return np.concatenate([detected, unseen])


class RichnessEstimator(Protocol):
    """Interface of a pluggable richness estimator."""

    def estimate_richness(self, sample: FrequencySample, quota_type: QuotaType,
                          quota_value: float,
                          rng: Optional[np.random.Generator] = None) -> RarefactionEstimate:
        ...


class ChaoRarefactionEstimator:
    """Rarefied/extrapolated richness with bootstrap confidence intervals."""

    def __init__(self,
                 n_bootstrap: int = 50,
                 confidence_level: float = 0.95,
                 allow_extrapolation: bool = False):
        """Initialize estimator.

        Args:
            n_bootstrap: Bootstrap replicates for the interval (0 disables it)
            confidence_level: Two-sided interval level
            allow_extrapolation: Permit quotas beyond the observed sample
        """
        self.n_bootstrap = require_count('n_bootstrap', n_bootstrap, minimum=0)
        self.confidence_level = require_fraction('confidence_level', confidence_level)
        if self.confidence_level >= 1:
            raise InvalidConfigurationError("confidence_level must be below 1")
        self.allow_extrapolation = bool(allow_extrapolation)

    def standard_size(self, sample: FrequencySample, quota_type: QuotaType,
                      quota_value: float) -> Tuple[float, bool]:
        """Sample size the quota corresponds to, and whether it is extrapolated."""
        if quota_type is QuotaType.COVERAGE:
            return size_for_coverage(sample, quota_value, self.allow_extrapolation)

        m = float(quota_value)
        if m <= sample.size:
            return m, False
        if not self.allow_extrapolation:
            raise InfeasibleRarefactionError(
                f"Quota {quota_value:g} exceeds the observed sample size {sample.size}"
            )
        if m > MAX_EXTRAPOLATION_FACTOR * sample.size:
            raise InfeasibleRarefactionError(
                f"Quota {quota_value:g} exceeds {MAX_EXTRAPOLATION_FACTOR}x the observed sample size"
            )
        return m, True

    def estimate_richness(self,
                          sample: Union[FrequencySample, Sequence[int]],
                          quota_type: QuotaType,
                          quota_value: float,
                          rng: Optional[np.random.Generator] = None) -> RarefactionEstimate:
        """Richness standardised to ``quota_value``.

        Args:
            sample: FrequencySample, or a plain abundance vector
            quota_type: SAMPLE_SIZE (occurrences or units) or COVERAGE
            quota_value: Integer size, or coverage in (0, 1]
            rng: Generator for the bootstrap

        Raises:
            InvalidConfigurationError: for malformed quotas
            InfeasibleRarefactionError: when the quota cannot be met
        """
        if not isinstance(sample, FrequencySample):
            sample = FrequencySample.from_abundances(sample)
        quota_type = resolve_enum(QuotaType, quota_type, 'quota_type')
        if quota_type is QuotaType.COVERAGE:
            quota_value = require_fraction('coverage quota', quota_value)
        else:
            quota_value = require_count('sample size quota', quota_value)

        if sample.s_obs == 0:
            raise InfeasibleRarefactionError("No occurrences to rarefy")

        m, extrapolated = self.standard_size(sample, quota_type, quota_value)
        estimate = richness_at(sample, m)
        lower, upper = self._interval(sample, m, estimate, rng)

        return RarefactionEstimate(
            estimate=estimate,
            lower_ci=lower,
            upper_ci=upper,
            coverage=coverage_at(sample, m),
            sample_size=m,
            extrapolated=extrapolated,
        )

    def _interval(self, sample: FrequencySample, m: float, estimate: float,
                  rng: Optional[np.random.Generator]) -> Tuple[float, float]:
        if self.n_bootstrap < 2:
            return float('nan'), float('nan')

        rng = rng if rng is not None else np.random.default_rng()
        probs = bootstrap_assemblage(sample)

        replicates = np.empty(self.n_bootstrap)
        for b in range(self.n_bootstrap):
            boot = self._resample(sample, probs, rng)
            replicates[b] = richness_at(boot, m) if boot.s_obs else 0.0

        z = norm.ppf(0.5 + self.confidence_level / 2)
        se = float(np.std(replicates, ddof=1))
        return max(estimate - z * se, 0.0), estimate + z * se

    @staticmethod
    def _resample(sample: FrequencySample, probs: np.ndarray,
                  rng: np.random.Generator) -> FrequencySample:
        if sample.kind is FrequencyType.INCIDENCE:
            freqs = rng.binomial(sample.size, np.clip(probs, 0.0, 1.0))
            return FrequencySample(freqs[freqs > 0].astype(np.int64), sample.size, FrequencyType.INCIDENCE)

        p = probs / probs.sum()
        counts = rng.multinomial(sample.size, p)
        counts = counts[counts > 0].astype(np.int64)
        return FrequencySample(counts, int(counts.sum()), FrequencyType.ABUNDANCE)
