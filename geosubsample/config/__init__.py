from .config import Config, config
from .sampling_config import (
    ProcessingConfig, require_positive, require_count, require_fraction, resolve_enum
)

__all__ = [
    'Config', 'config', 'ProcessingConfig',
    'require_positive', 'require_count', 'require_fraction', 'resolve_enum'
]
