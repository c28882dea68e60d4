"""Unit tests for configuration module.

Tests cover settings validation, type coercion, property methods,
and environment variable loading behavior.
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from chatload.core.config import DEFAULT_SCENARIO_MODELS, Settings, get_settings


class TestSettings:
    """Tests for Settings configuration class."""

    def test_default_settings(self):
        """Settings initializes with valid defaults when no .env file."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

            assert settings.base_url == "https://api.mor.org"
            assert settings.api_path == "/api/v1/chat/completions"
            assert settings.request_timeout_sec == 60.0
            assert settings.default_model == "default"

            assert settings.max_concurrent_requests == 100
            assert settings.max_workers >= 1
            assert settings.exchanges_per_conversation == 3
            assert settings.exchange_delay_min_sec == 1.0
            assert settings.exchange_delay_max_sec == 3.0

            assert settings.api_keys_file == "data/api_keys_temp.json"
            assert settings.results_dir == "results"
            assert settings.scenario_models == DEFAULT_SCENARIO_MODELS

            assert settings.verbose_output is False
            assert settings.log_level == "INFO"
            assert settings.log_format == "console"
            assert settings.metrics_port is None

    def test_api_endpoint_joins_base_and_path(self):
        """api_endpoint concatenates base URL and path."""
        settings = Settings(_env_file=None, base_url="http://localhost:8080", api_path="/v1/chat")

        assert settings.api_endpoint == "http://localhost:8080/v1/chat"

    def test_trailing_slash_stripped_from_base_url(self):
        """A trailing slash on the base URL does not double up."""
        settings = Settings(_env_file=None, base_url="http://localhost:8080/")

        assert settings.api_endpoint == "http://localhost:8080/api/v1/chat/completions"

    def test_concurrency_limit_must_be_positive(self):
        """max_concurrent_requests rejects values below 1."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(_env_file=None, max_concurrent_requests=0)

        errors = exc_info.value.errors()
        assert any(e["loc"] == ("max_concurrent_requests",) for e in errors)

    def test_exchanges_per_conversation_must_be_positive(self):
        """exchanges_per_conversation rejects values below 1."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, exchanges_per_conversation=0)

    def test_delay_range_must_be_ordered(self):
        """Upper delay bound below the lower bound is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(_env_file=None, exchange_delay_min_sec=2.0, exchange_delay_max_sec=1.0)

        errors = exc_info.value.errors()
        assert any(e["loc"] == ("exchange_delay_max_sec",) for e in errors)

    def test_equal_delay_bounds_allowed(self):
        """A zero-width delay range is valid (used for fast runs)."""
        settings = Settings(_env_file=None, exchange_delay_min_sec=0, exchange_delay_max_sec=0)

        assert settings.exchange_delay_max_sec == 0

    def test_timeout_must_be_positive(self):
        """request_timeout_sec rejects zero."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, request_timeout_sec=0)

    def test_metrics_port_range(self):
        """metrics_port rejects values outside the TCP port range."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, metrics_port=70000)

    def test_log_level_case_insensitive(self):
        """Log level is normalized to uppercase."""
        settings = Settings(_env_file=None, log_level="debug")

        assert settings.log_level == "DEBUG"

    def test_log_format_validation(self):
        """Log format only accepts json or console."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_format="xml")


class TestEnvironmentLoading:
    """Tests for environment variable loading."""

    def test_legacy_variable_names(self):
        """The variable names of the legacy shell scripts are honored."""
        env = {
            "MAX_CONCURRENT_REQUESTS": "25",
            "VERBOSE_OUTPUT": "1",
            "API_KEYS_FILE": "/tmp/keys.json",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings(_env_file=None)

            assert settings.max_concurrent_requests == 25
            assert settings.verbose_output is True
            assert settings.api_keys_file == "/tmp/keys.json"

    def test_scenario_models_from_json(self):
        """List settings are parsed from JSON."""
        with patch.dict(os.environ, {"SCENARIO_MODELS": '["a", "b"]'}, clear=True):
            settings = Settings(_env_file=None)

            assert settings.scenario_models == ["a", "b"]

    def test_invalid_integer_from_env(self):
        """Non-numeric value for an integer setting is rejected."""
        with patch.dict(os.environ, {"MAX_CONCURRENT_REQUESTS": "lots"}, clear=True):
            with pytest.raises(ValidationError):
                Settings(_env_file=None)


class TestGetSettings:
    """Tests for cached settings accessor."""

    def test_get_settings_is_cached(self):
        """get_settings returns the same instance on repeated calls."""
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
