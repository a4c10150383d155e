# geosubsample/config/sampling_config.py
"""Typed parameter objects and validation for the sampling engine.

Validation runs before any sampling starts and raises
InvalidConfigurationError for out-of-range or contradictory values.
"""

import math
from dataclasses import dataclass, asdict
from enum import Enum
from numbers import Integral, Real
from typing import Any, Dict, Optional, Type, TypeVar

from ..exceptions import InvalidConfigurationError

E = TypeVar('E', bound=Enum)

PARALLEL_BACKENDS = ('process', 'thread')


def require_positive(name: str, value: Any) -> float:
    """Finite number strictly greater than zero."""
    if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value) or value <= 0:
        raise InvalidConfigurationError(f"{name} must be a positive number, got {value!r}")
    return float(value)


def require_count(name: str, value: Any, minimum: int = 1) -> int:
    """Integer no smaller than ``minimum``."""
    if isinstance(value, bool) or not isinstance(value, Integral) or value < minimum:
        raise InvalidConfigurationError(f"{name} must be an integer >= {minimum}, got {value!r}")
    return int(value)


def require_fraction(name: str, value: Any) -> float:
    """Number in the half-open interval (0, 1]."""
    if isinstance(value, bool) or not isinstance(value, Real) or not 0 < value <= 1:
        raise InvalidConfigurationError(f"{name} must lie in (0, 1], got {value!r}")
    return float(value)


def resolve_enum(enum_cls: Type[E], value: Any, name: str) -> E:
    """Accept an enum member or its value, e.g. ``'full'`` for OutputMode.FULL."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        choices = ', '.join(m.value for m in enum_cls)
        raise InvalidConfigurationError(f"{name} must be one of: {choices}; got {value!r}")


@dataclass
class ProcessingConfig:
    """How sampler iterations and summary rows are dispatched."""
    max_workers: int = 1
    parallel_backend: str = 'process'
    chunk_size: int = 8

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        require_count('max_workers', self.max_workers)
        require_count('chunk_size', self.chunk_size)
        if self.parallel_backend not in PARALLEL_BACKENDS:
            raise InvalidConfigurationError(
                f"parallel_backend must be one of {PARALLEL_BACKENDS}, got {self.parallel_backend!r}"
            )

    @property
    def is_parallel(self) -> bool:
        return self.max_workers > 1

    @classmethod
    def from_config(cls, config_source: Optional[Any] = None) -> 'ProcessingConfig':
        """Build from a Config object (or plain dict) ``processing`` section."""
        if config_source is None:
            from .config import config as config_source
        if isinstance(config_source, dict):
            section = config_source.get('processing', config_source)
        else:
            section = config_source.get('processing', {})
        known = {k: section[k] for k in ('max_workers', 'parallel_backend', 'chunk_size') if k in section}
        return cls(**known)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
