"""
Capacity-bounded maps backing the cache tiers.

- BoundedMap (base.py): Abstract contract consumed by the data and request tiers
- LRUMap (lru.py): Recency-based default implementation
"""

from normcache.cache.base import BoundedMap, MapFactory
from normcache.cache.lru import LRUMap

__all__ = ["BoundedMap", "LRUMap", "MapFactory"]
