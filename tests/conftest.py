"""
Pytest configuration and fixtures for normalized cache tests.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Generator
from unittest.mock import AsyncMock, patch

import pytest

from normcache.config import Settings, clear_settings_cache
from normcache.normalized import NormalizedCache
from normcache.types import RequestOptions

OBJECTS = [{"id": 0}, {"id": 1}]
HEADERS = {"content-type": "application/json"}


def format_response(body: Any) -> dict[str, Any]:
    """Put a bare list under a named entity type."""
    return {"objects": body}


def unformat_response(body: dict[str, Any]) -> Any:
    """Inverse of format_response."""
    return body["objects"]


@pytest.fixture
def cache() -> NormalizedCache:
    """Provide a cache with default capacities."""
    return NormalizedCache()


@pytest.fixture
def fetch() -> AsyncMock:
    """Provide a fetch function returning a list of objects with headers."""
    return AsyncMock(return_value={"body": [dict(o) for o in OBJECTS], "metadata": HEADERS})


@pytest.fixture
def list_options() -> RequestOptions:
    """Options that key requests as "K" and wrap list bodies as "objects"."""
    return RequestOptions(name="K", format=format_response, unformat=unformat_response)


@pytest.fixture
def mock_env_vars() -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "NORMCACHE_DATA_CACHE_MAX_ENTRIES": "50",
        "NORMCACHE_REQUEST_CACHE_MAX_ENTRIES": "20",
        "NORMCACHE_DATA_TYPES": '{"users": {"id_property": "uid", "cache": {"max_entries": 5}}}',
        "NORMCACHE_LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str]) -> Settings:
    """Provide a Settings instance with mock configuration."""
    return Settings(_env_file=None)


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def restore_logging() -> Generator[None, None, None]:
    """Restore the normcache logger after tests that configure logging."""
    logger = logging.getLogger("normcache")
    level, handlers, propagate = logger.level, list(logger.handlers), logger.propagate
    yield
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate
