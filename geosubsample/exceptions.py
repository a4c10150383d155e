"""Exceptions raised by the sampling engine."""

from typing import Optional


class GeoSubsampleError(Exception):
    """Base error."""
    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(message)
        self.original_exception = original_exception


class DegenerateInputError(GeoSubsampleError):
    """Raised when a geometric operation receives fewer than 2 distinct points."""
    pass


class InsufficientPoolError(GeoSubsampleError):
    """Raised when a draw cannot meet its site quota.

    Samplers record it per iteration as an omission instead of propagating it.
    """
    def __init__(self, message: str, available: int = 0, required: int = 0):
        super().__init__(message)
        self.available = available
        self.required = required


class InfeasibleRarefactionError(GeoSubsampleError):
    """Raised when a rarefaction quota exceeds what the data support without extrapolation."""
    pass


class InvalidConfigurationError(GeoSubsampleError):
    """Raised for contradictory or out-of-range parameters, before any sampling."""
    pass
