"""
Tests for configuration module.
"""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from normcache.config import (
    CapacityConfig,
    DataTypeConfig,
    Settings,
    clear_settings_cache,
    get_settings,
)
from normcache.fingerprint import fingerprint
from normcache.normalized import NormalizedCache


class TestSettingsValidation:
    """Tests for Settings validation."""

    def test_settings_loads_from_env(self, mock_env_vars: dict[str, str]) -> None:
        """Test that settings correctly loads from environment variables."""
        settings = get_settings()

        assert settings.DATA_CACHE_MAX_ENTRIES == 50
        assert settings.REQUEST_CACHE_MAX_ENTRIES == 20
        assert settings.DATA_TYPES == {
            "users": DataTypeConfig(id_property="uid", cache=CapacityConfig(max_entries=5))
        }
        assert settings.LOG_LEVEL == "DEBUG"

    def test_rejects_non_positive_capacity(self) -> None:
        """Test that capacities must be at least one."""
        with patch.dict(os.environ, {"NORMCACHE_DATA_CACHE_MAX_ENTRIES": "0"}):
            with pytest.raises(ValidationError):
                Settings(_env_file=None)

    def test_rejects_blank_type_name(self) -> None:
        """Test that DATA_TYPES keys must be non-empty."""
        with patch.dict(os.environ, {"NORMCACHE_DATA_TYPES": '{" ": {}}'}):
            with pytest.raises(ValidationError) as exc_info:
                Settings(_env_file=None)

        assert "non-empty" in str(exc_info.value)

    def test_get_settings_is_cached(self, mock_env_vars: dict[str, str]) -> None:
        """Test that get_settings returns a singleton until cleared."""
        first = get_settings()
        assert get_settings() is first

        clear_settings_cache()
        assert get_settings() is not first


class TestSettingsDefaults:
    """Tests for Settings default values."""

    def test_defaults(self) -> None:
        """Test default capacities and log level."""
        keys = [k for k in os.environ if k.startswith("NORMCACHE_")]
        with patch.dict(os.environ, {}, clear=False):
            for key in keys:
                os.environ.pop(key)
            settings = Settings(_env_file=None)

        assert settings.default_data_cache == CapacityConfig(max_entries=500)
        assert settings.default_request_cache == CapacityConfig(max_entries=500)
        assert settings.DATA_TYPES == {}
        assert settings.LOG_LEVEL == "INFO"

    def test_unset_capacity_disables_default(self) -> None:
        """Test that an explicit null capacity leaves no default config."""
        settings = Settings(_env_file=None, DATA_CACHE_MAX_ENTRIES=None)

        assert settings.default_data_cache is None

    def test_redacted_display(self, mock_settings: Settings) -> None:
        """Test the flattened display values."""
        display = mock_settings.redacted_display()

        assert display["DATA_CACHE_MAX_ENTRIES"] == 50
        assert display["DATA_TYPES"] == "users (id=uid, max=5)"


class TestCacheFromSettings:
    """Tests for building a cache from settings."""

    def test_from_settings(self, mock_settings: Settings) -> None:
        """Test that per-type overrides and defaults are applied."""
        cache = NormalizedCache.from_settings(mock_settings)

        assert cache.id_property("users") == "uid"
        assert cache.data_cache_config("users") == CapacityConfig(max_entries=5)
        assert cache.data_cache_config("posts") == CapacityConfig(max_entries=50)

    def test_from_env(self, mock_env_vars: dict[str, str]) -> None:
        """Test that the cached settings are used by default."""
        cache = NormalizedCache.from_settings()
        cache.set_caches("users", fingerprint([]), {"body": {"users": [{"uid": 1}]}})

        assert cache.body("users", []) == {"users": [{"uid": 1}]}
