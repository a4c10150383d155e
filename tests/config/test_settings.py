"""Tests for the configuration system."""

import pytest

from geosubsample.config import (
    Config, ProcessingConfig, require_count, require_fraction, require_positive, resolve_enum
)
from geosubsample.abstractions.types import OutputMode
from geosubsample.exceptions import InvalidConfigurationError


@pytest.fixture
def defaults_only():
    return Config(discover=False)


class TestConfig:
    """Defaults, YAML overrides and dot-notation access."""

    def test_default_sections(self, defaults_only):
        assert defaults_only.get('radial.radius') == 700.0
        assert defaults_only.get('radial.site_quota') == 12
        assert defaults_only.get('cluster.min_sites') == 3
        assert defaults_only.get('band.band_width') == 20.0
        assert defaults_only.get('summary.n_bootstrap') == 50
        assert defaults_only.processing['max_workers'] == 1
        assert defaults_only.config_file is None

    def test_missing_key_returns_default(self, defaults_only):
        assert defaults_only.get('radial.nothing', 'fallback') == 'fallback'
        assert defaults_only.get('nothing.at.all') is None

    def test_yaml_deep_merge(self, tmp_path):
        config_file = tmp_path / 'config.yml'
        config_file.write_text("radial:\n  radius: 250\nprocessing:\n  max_workers: 4\n")

        cfg = Config(config_file)
        assert cfg.get('radial.radius') == 250
        assert cfg.get('radial.site_quota') == 12
        assert cfg.get('processing.max_workers') == 4
        assert cfg.config_file == config_file

    def test_environment_variable(self, tmp_path, monkeypatch):
        config_file = tmp_path / 'custom.yml'
        config_file.write_text("band:\n  band_width: 10\n")
        monkeypatch.setenv('GEOSUBSAMPLE_CONFIG', str(config_file))
        assert Config().get('band.band_width') == 10

    def test_missing_file(self, tmp_path):
        with pytest.raises(InvalidConfigurationError):
            Config(tmp_path / 'absent.yml')

    def test_malformed_yaml(self, tmp_path):
        config_file = tmp_path / 'bad.yml'
        config_file.write_text("- just\n- a list\n")
        with pytest.raises(InvalidConfigurationError):
            Config(config_file)

    def test_update(self, defaults_only):
        defaults_only.update({'summary': {'classical_quota': 40}})
        assert defaults_only.get('summary.classical_quota') == 40
        assert defaults_only.get('summary.n_bootstrap') == 50

    def test_defaults_not_shared(self):
        a = Config(discover=False)
        a.update({'radial': {'radius': 1.0}})
        assert Config(discover=False).get('radial.radius') == 700.0


class TestValidators:
    """Parameter validation helpers."""

    def test_positive(self):
        assert require_positive('radius', 3) == 3.0
        for bad in (0, -1, float('nan'), float('inf'), True, '5'):
            with pytest.raises(InvalidConfigurationError):
                require_positive('radius', bad)

    def test_count(self):
        assert require_count('iterations', 5) == 5
        assert require_count('n_bootstrap', 0, minimum=0) == 0
        for bad in (0, 2.5, False):
            with pytest.raises(InvalidConfigurationError):
                require_count('iterations', bad)

    def test_fraction(self):
        assert require_fraction('coverage', 1) == 1.0
        for bad in (0, 1.01, -0.2):
            with pytest.raises(InvalidConfigurationError):
                require_fraction('coverage', bad)

    def test_resolve_enum(self):
        assert resolve_enum(OutputMode, 'full', 'output_mode') is OutputMode.FULL
        assert resolve_enum(OutputMode, OutputMode.LOCATIONS, 'output_mode') is OutputMode.LOCATIONS
        with pytest.raises(InvalidConfigurationError):
            resolve_enum(OutputMode, 'records', 'output_mode')


class TestProcessingConfig:
    """Worker pool settings."""

    def test_from_config_object(self, tmp_path):
        config_file = tmp_path / 'config.yml'
        config_file.write_text("processing:\n  max_workers: 6\n  parallel_backend: thread\n")
        processing = ProcessingConfig.from_config(Config(config_file))
        assert processing.max_workers == 6
        assert processing.parallel_backend == 'thread'
        assert processing.chunk_size == 8
        assert processing.is_parallel

    def test_from_dict(self):
        processing = ProcessingConfig.from_config({'processing': {'max_workers': 1}})
        assert not processing.is_parallel
        assert processing.to_dict() == {'max_workers': 1, 'parallel_backend': 'process', 'chunk_size': 8}

    @pytest.mark.parametrize('kwargs', [
        {'max_workers': 0},
        {'chunk_size': 0},
        {'parallel_backend': 'gpu'},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(InvalidConfigurationError):
            ProcessingConfig(**kwargs)
