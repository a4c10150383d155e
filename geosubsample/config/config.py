# geosubsample/config/config.py
"""Configuration manager with YAML override support."""

import copy
import os
from pathlib import Path
from typing import Dict, Any, Optional

import yaml

from . import defaults
from ..exceptions import InvalidConfigurationError
from ..infrastructure.logging import get_logger

logger = get_logger(__name__)

CONFIG_ENV_VAR = 'GEOSUBSAMPLE_CONFIG'


class Config:
    """Configuration manager: package defaults deep-merged with an optional config.yml."""

    def __init__(self, config_file: Optional[Path] = None, discover: bool = True):
        """Initialize configuration.

        Args:
            config_file: Explicit YAML file to merge over the defaults
            discover: Search the usual locations when no file is given
        """
        self.settings = self.load_defaults()
        self.config_file = None

        if config_file is None and discover:
            config_file = self._find_config_file()

        if config_file is not None:
            config_file = Path(config_file)
            if not config_file.exists():
                raise InvalidConfigurationError(f"Config file not found: {config_file}")
            self._load_yaml_config(config_file)
            self.config_file = config_file
            logger.debug(f"Loaded configuration from {config_file}")

    def _find_config_file(self) -> Optional[Path]:
        """Find config.yml in the environment variable, project root, cwd or home."""
        env_path = os.environ.get(CONFIG_ENV_VAR)
        if env_path:
            return Path(env_path)

        potential_locations = [
            defaults.PROJECT_ROOT / 'config.yml',
            Path.cwd() / 'config.yml',
            Path.home() / '.geosubsample' / 'config.yml',
        ]

        for location in potential_locations:
            if location.exists() and location.is_file():
                return location

        return None

    def load_defaults(self) -> Dict[str, Any]:
        """Load default configuration settings."""
        return {
            'paths': copy.deepcopy(defaults.PATHS),
            'sampling': copy.deepcopy(defaults.SAMPLING),
            'radial': copy.deepcopy(defaults.RADIAL),
            'cluster': copy.deepcopy(defaults.CLUSTER),
            'band': copy.deepcopy(defaults.BAND),
            'summary': copy.deepcopy(defaults.SUMMARY),
            'processing': copy.deepcopy(defaults.PROCESSING),
            'logging': copy.deepcopy(defaults.LOGGING),
        }

    def _load_yaml_config(self, config_file: Path):
        """Load and merge configuration from a YAML file."""
        with open(config_file, 'r') as file:
            try:
                yaml_config = yaml.safe_load(file)
            except yaml.YAMLError as e:
                raise InvalidConfigurationError(f"Cannot parse {config_file}: {e}", e)

        if yaml_config is None:
            return
        if not isinstance(yaml_config, dict):
            raise InvalidConfigurationError(f"{config_file} must contain a mapping at top level")
        self._deep_merge(self.settings, yaml_config)

    def _deep_merge(self, base: dict, override: dict):
        """Deep merge override into base dictionary."""
        for key, value in override.items():
            if isinstance(value, dict) and key in base and isinstance(base[key], dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation."""
        value = self.settings
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def update(self, overrides: Dict[str, Any]):
        """Merge a nested dict of overrides (e.g. from the command line)."""
        self._deep_merge(self.settings, overrides)

    @property
    def processing(self) -> Dict[str, Any]:
        return self.settings.get('processing', {})


config = Config()
