"""Splittable random stream handle.

Every sampler receives a RandomStream instead of touching a process-wide
generator. Substreams are keyed by integers (iteration index, band index,
summary row), so the generator used for iteration ``i`` depends only on the
root seed and ``i``. Results are therefore identical whether iterations run
sequentially or in any number of workers.
"""

from typing import Optional, Tuple, Union

import numpy as np


class RandomStream:
    """Keyed, picklable wrapper around ``numpy.random.SeedSequence``."""

    def __init__(self, seed: Optional[int] = None,
                 seed_sequence: Optional[np.random.SeedSequence] = None):
        """Initialize stream.

        Args:
            seed: Root seed; fresh OS entropy when None
            seed_sequence: Existing sequence to wrap (takes precedence)
        """
        self._seed_sequence = seed_sequence if seed_sequence is not None \
            else np.random.SeedSequence(seed)

    @classmethod
    def coerce(cls, seed: 'SeedLike') -> 'RandomStream':
        """Accept a RandomStream, SeedSequence, non-negative int or None."""
        if isinstance(seed, RandomStream):
            return seed
        if isinstance(seed, np.random.SeedSequence):
            return cls(seed_sequence=seed)
        if seed is not None and not isinstance(seed, (int, np.integer)):
            raise TypeError(f"Cannot build a random stream from {type(seed).__name__}")
        if seed is not None and seed < 0:
            raise ValueError(f"Seed must be non-negative, got {seed}")
        return cls(None if seed is None else int(seed))

    def substream(self, key: int) -> 'RandomStream':
        """Child stream identified by ``key``; the same key always gives the same child."""
        ss = self._seed_sequence
        child = np.random.SeedSequence(
            entropy=ss.entropy,
            spawn_key=tuple(ss.spawn_key) + (int(key),),
            pool_size=ss.pool_size,
        )
        return RandomStream(seed_sequence=child)

    def generator(self) -> np.random.Generator:
        """Fresh generator positioned at the start of this stream."""
        return np.random.default_rng(self._seed_sequence)

    @property
    def entropy(self) -> int:
        """Root entropy, recorded so unseeded runs can be replayed."""
        return self._seed_sequence.entropy

    @property
    def key(self) -> Tuple[int, ...]:
        return tuple(self._seed_sequence.spawn_key)

    def __repr__(self) -> str:
        return f"RandomStream(entropy={self.entropy}, key={self.key})"


SeedLike = Union[RandomStream, np.random.SeedSequence, int, None]
