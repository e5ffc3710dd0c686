"""
Tests for settings loading and validation.
"""

import os
from datetime import timedelta
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from review_poller.config import DEFAULT_FEED_URL_TEMPLATE, Settings


class TestSettingsDefaults:
    """Test default settings values."""

    def test_defaults(self):
        """Test that defaults apply with an empty environment."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.port == 4000
        assert settings.database_url == "sqlite:///./reviews.db"
        assert settings.seed_app_id == "595068606"
        assert settings.feed_url_template == DEFAULT_FEED_URL_TEMPLATE
        assert settings.get_allowed_origins() == ["*"]

    def test_derived_configs(self):
        """Test the grouped configuration objects."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.polling_config.default_interval == timedelta(minutes=5)
        assert settings.polling_config.max_attempts == 3
        assert settings.polling_config.cycle_timeout_seconds == 120.0
        assert settings.feed_config.request_timeout_seconds == 30.0
        assert settings.feed_config.retry_backoff_seconds == 1.0
        assert settings.server_config.host == "0.0.0.0"


class TestSettingsFromEnvironment:
    """Test settings read from environment variables."""

    def test_environment_overrides(self):
        """Test reading values from the environment."""
        with patch.dict(
            os.environ,
            {
                "PORT": "8080",
                "DATABASE_URL": "memory://",
                "DEFAULT_POLL_INTERVAL": "90s",
                "FETCH_MAX_ATTEMPTS": "5",
                "LOG_LEVEL": "debug",
                "ALLOWED_ORIGINS": "https://a.example, https://b.example",
            },
            clear=True,
        ):
            settings = Settings(_env_file=None)

        assert settings.port == 8080
        assert settings.database_url == "memory://"
        assert settings.polling_config.default_interval == timedelta(seconds=90)
        assert settings.polling_config.max_attempts == 5
        assert settings.log_level == "DEBUG"
        assert settings.get_allowed_origins() == [
            "https://a.example",
            "https://b.example",
        ]

    @pytest.mark.parametrize(
        "env",
        [
            {"DEFAULT_POLL_INTERVAL": "0s"},
            {"DEFAULT_POLL_INTERVAL": "-1m"},
            {"DEFAULT_POLL_INTERVAL": "often"},
            {"LOG_LEVEL": "verbose"},
            {"LOG_FORMAT": "xml"},
            {"FEED_URL_TEMPLATE": "https://example.test/reviews.json"},
            {"FETCH_MAX_ATTEMPTS": "0"},
            {"CYCLE_TIMEOUT_SECONDS": "-1"},
            {"RETRY_BACKOFF_SECONDS": "-0.5"},
        ],
    )
    def test_invalid_values_rejected(self, env):
        """Test that invalid settings fail validation."""
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(ValidationError):
                Settings(_env_file=None)

    def test_zero_backoff_allowed(self):
        """Test that retries may run back to back."""
        with patch.dict(os.environ, {"RETRY_BACKOFF_SECONDS": "0"}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.feed_config.retry_backoff_seconds == 0.0
