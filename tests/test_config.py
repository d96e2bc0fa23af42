"""
Tests for YAML configuration loading.
"""

import pytest

from eratosthenes.config import DEFAULT_CONFIG_PATH, SieveConfig, load_config


class TestLoadConfig:
    """load_config reads YAML into a SieveConfig."""

    def test_no_path_gives_defaults(self):
        assert load_config() == SieveConfig()

    def test_shipped_defaults_match_dataclass(self):
        assert load_config(DEFAULT_CONFIG_PATH) == SieveConfig()

    def test_partial_file(self, tmp_path):
        path = tmp_path / "sieve.yaml"
        path.write_text("strategy: parallel-by-range\nbackend: thread\nlock_mode: striped\n")
        config = load_config(path)
        assert config.strategy == "parallel-by-range"
        assert config.backend == "thread"
        assert config.lock_mode == "striped"
        assert config.lock_stripes == 64
        assert config.num_workers is None

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == SieveConfig()

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("strategy: sequential\nthreads: 4\n")
        with pytest.raises(ValueError, match="threads"):
            load_config(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- sequential\n- thread-pool\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)


class TestSieveConfigValidation:
    """Invalid settings are rejected up front."""

    @pytest.mark.parametrize("overrides", [
        {"strategy": "by-magic"},
        {"backend": "gpu"},
        {"lock_mode": "rwlock"},
        {"backend": "process", "lock_mode": "global"},
        {"num_workers": 0},
        {"num_workers": 2.5},
        {"lock_stripes": 0},
        {"lock_stripes": 2.5},
        {"start_method": "teleport"},
    ])
    def test_invalid(self, overrides):
        with pytest.raises(ValueError):
            SieveConfig(**overrides)