"""Tests for configuration."""

import pytest

from sql_advisor.config import ConnectionNotConfiguredError, Settings


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        """Test default values."""
        settings = Settings(_env_file=None)
        assert settings.command_timeout_seconds == 30.0
        assert settings.benchmark_iterations == 3
        assert settings.warmup_iterations == 1
        assert settings.max_recommendations == 10
        assert settings.sql_dialect == "tsql"

    def test_environment_override(self, monkeypatch):
        """Test SQL_ADVISOR_ prefixed variables are read."""
        monkeypatch.setenv("SQL_ADVISOR_MAX_RECOMMENDATIONS", "5")
        monkeypatch.setenv("SQL_ADVISOR_CONNECTION_STRING", "Driver={X};Server=db")
        settings = Settings(_env_file=None)
        assert settings.max_recommendations == 5
        assert settings.require_connection_string() == "Driver={X};Server=db"

    def test_missing_connection_string(self, monkeypatch):
        """Test require_connection_string raises when unset."""
        monkeypatch.delenv("SQL_ADVISOR_CONNECTION_STRING", raising=False)
        settings = Settings(_env_file=None)
        assert not settings.has_connection_string()
        with pytest.raises(ConnectionNotConfiguredError):
            settings.require_connection_string()

    def test_default_options(self):
        """Test analysis options are seeded from settings."""
        settings = Settings(
            _env_file=None,
            command_timeout_seconds=5,
            max_recommendations=4,
            benchmark_iterations=7,
            warmup_iterations=0,
        )
        options = settings.default_options()
        assert options.max_execution_time_ms == 5000
        assert options.max_recommendations == 4
        assert options.comparison_iterations == 7
        assert options.comparison_warmup == 0
        assert options.analyze_indexes and options.collect_metrics
