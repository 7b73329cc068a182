"""
Tests for configuration module.
"""

import pytest
from pydantic import ValidationError

from bayesreg.config import Settings, get_settings


class TestSettings:
    """Test configuration loading and validation."""

    def test_default_settings(self):
        """Test default settings are valid."""
        settings = Settings()

        assert settings.random_seed == 42
        assert settings.chains == 4
        assert settings.cores == 1
        assert settings.target_accept == 0.9
        assert settings.credible_interval == 0.95
        assert settings.rhat_threshold == 1.01
        assert settings.ess_threshold == 400
        assert settings.use_cache is False

    def test_credible_interval_bounds(self):
        """Credible interval must lie strictly between 0 and 1."""
        assert Settings(credible_interval=0.9).credible_interval == 0.9

        with pytest.raises(ValidationError):
            Settings(credible_interval=1.0)
        with pytest.raises(ValidationError):
            Settings(credible_interval=0.0)

    def test_target_accept_bounds(self):
        with pytest.raises(ValidationError):
            Settings(target_accept=1.5)

    def test_log_level_normalised(self):
        """Log level is upper-cased and validated."""
        assert Settings(log_level="debug").log_level == "DEBUG"

        with pytest.raises(ValidationError):
            Settings(log_level="chatty")

    def test_cache_dir_creation(self, tmp_path):
        """Test cache directory is created."""
        cache_dir = tmp_path / "test_cache"
        settings = Settings(cache_dir=cache_dir)

        assert settings.cache_dir == cache_dir
        assert cache_dir.exists()

    def test_figures_dir_from_string(self, tmp_path):
        figures = tmp_path / "figs"
        settings = Settings(figures_dir=str(figures))

        assert settings.figures_dir == figures
        assert figures.is_dir()

    def test_log_file_parent_created(self, tmp_path):
        log_file = tmp_path / "logs" / "course.log"
        settings = Settings(log_file=log_file)

        assert settings.log_file == log_file
        assert log_file.parent.exists()

    def test_env_override(self, monkeypatch):
        """Environment variables override defaults (case-insensitive)."""
        monkeypatch.setenv("DRAWS", "250")
        monkeypatch.setenv("use_cache", "true")
        settings = Settings()

        assert settings.draws == 250
        assert settings.use_cache is True

    def test_get_settings_cached(self):
        assert get_settings() is get_settings()
