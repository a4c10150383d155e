"""Foundation utilities with no dependency on other package layers."""

from .random_stream import RandomStream, SeedLike

__all__ = ['RandomStream', 'SeedLike']
