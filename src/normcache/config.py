"""
Configuration management using pydantic-settings.

Capacity configuration for the data and request tiers is built once per
application and passed to ``NormalizedCache`` at construction. It is not
re-validated at runtime.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MAX_ENTRIES = 500


class CapacityConfig(BaseModel):
    """Construction parameters for one capacity-bounded map."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    max_entries: int = Field(default=DEFAULT_MAX_ENTRIES, ge=1)
    on_evict: Callable[[Any, Any], None] | None = Field(
        default=None,
        exclude=True,
        description="Called with (key, value) when an entry is evicted for capacity",
    )


class DataTypeConfig(BaseModel):
    """Per-entity-type overrides for id naming and data-tier capacity."""

    model_config = ConfigDict(frozen=True)

    id_property: str = Field(default="id", min_length=1)
    cache: CapacityConfig | None = None


class Settings(BaseSettings):
    """Process-wide cache settings loaded from environment variables.

    Optional:
        NORMCACHE_DATA_CACHE_MAX_ENTRIES: Default entity capacity per type
        NORMCACHE_REQUEST_CACHE_MAX_ENTRIES: Default fingerprint capacity per request key
        NORMCACHE_DATA_TYPES: JSON table of per-type overrides, e.g.
            {"users": {"id_property": "uid", "cache": {"max_entries": 50}}}
        NORMCACHE_LOG_LEVEL: Logging level
    """

    model_config = SettingsConfigDict(
        env_prefix="NORMCACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    DATA_CACHE_MAX_ENTRIES: int | None = Field(
        default=DEFAULT_MAX_ENTRIES,
        ge=1,
        description="Default capacity of each entity type map (unset disables lazy creation)",
    )
    REQUEST_CACHE_MAX_ENTRIES: int | None = Field(
        default=DEFAULT_MAX_ENTRIES,
        ge=1,
        description="Default capacity of each request key map (unset disables lazy creation)",
    )
    DATA_TYPES: dict[str, DataTypeConfig] = Field(
        default_factory=dict,
        description="Per-type id property and capacity overrides",
    )

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    @field_validator("DATA_TYPES")
    @classmethod
    def validate_type_names(cls, v: dict[str, DataTypeConfig]) -> dict[str, DataTypeConfig]:
        """Reject blank entity type names."""
        for name in v:
            if not name.strip():
                raise ValueError("DATA_TYPES keys must be non-empty type names")
        return v

    @property
    def default_data_cache(self) -> CapacityConfig | None:
        """Capacity config for entity types without their own."""
        if self.DATA_CACHE_MAX_ENTRIES is None:
            return None
        return CapacityConfig(max_entries=self.DATA_CACHE_MAX_ENTRIES)

    @property
    def default_request_cache(self) -> CapacityConfig | None:
        """Capacity config for request keys called without a ``cache`` option."""
        if self.REQUEST_CACHE_MAX_ENTRIES is None:
            return None
        return CapacityConfig(max_entries=self.REQUEST_CACHE_MAX_ENTRIES)

    def redacted_display(self) -> dict[str, str | int | None]:
        """Return settings flattened for display."""
        types = {
            name: f"id={cfg.id_property}, max={cfg.cache.max_entries if cfg.cache else 'default'}"
            for name, cfg in self.DATA_TYPES.items()
        }
        return {
            "DATA_CACHE_MAX_ENTRIES": self.DATA_CACHE_MAX_ENTRIES,
            "REQUEST_CACHE_MAX_ENTRIES": self.REQUEST_CACHE_MAX_ENTRIES,
            "DATA_TYPES": "; ".join(f"{k} ({v})" for k, v in types.items()) or None,
            "LOG_LEVEL": self.LOG_LEVEL,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
