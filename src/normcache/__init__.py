"""
normcache: a normalized two-tier response cache for async fetch functions.
"""

from normcache.cache import BoundedMap, LRUMap, MapFactory
from normcache.config import CapacityConfig, DataTypeConfig, Settings, get_settings
from normcache.exceptions import (
    ConfigurationError,
    FingerprintError,
    MissingCapacityConfigError,
    MissingKeyError,
    NormCacheError,
)
from normcache.fingerprint import fingerprint
from normcache.normalized import NormalizedCache
from normcache.types import (
    NO_METADATA,
    CacheStats,
    Metadata,
    RequestOptions,
    Response,
    ScalarRef,
    SequenceRef,
)

__version__ = "0.1.0"

__all__ = [
    "NO_METADATA",
    "BoundedMap",
    "CacheStats",
    "CapacityConfig",
    "ConfigurationError",
    "DataTypeConfig",
    "FingerprintError",
    "LRUMap",
    "MapFactory",
    "Metadata",
    "MissingCapacityConfigError",
    "MissingKeyError",
    "NormCacheError",
    "NormalizedCache",
    "RequestOptions",
    "Response",
    "ScalarRef",
    "SequenceRef",
    "Settings",
    "fingerprint",
    "get_settings",
    "__version__",
]
