"""
LRU (Least Recently Used) bounded map.

Uses OrderedDict for O(1) access and efficient LRU eviction.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Hashable
from typing import Any

from normcache.cache.base import BoundedMap
from normcache.config import CapacityConfig


class LRUMap(BoundedMap):
    """LRU map using OrderedDict.

    Features:
    - O(1) get/set operations
    - Automatic LRU eviction when max_entries is reached
    - ``on_evict(key, value)`` hook for capacity evictions only
    - Safe for single-threaded async code
    """

    def __init__(self, config: CapacityConfig | None = None) -> None:
        """
        Initialize LRU map.

        Args:
            config: Capacity configuration (default: 500 entries, no hook)
        """
        self._config = config or CapacityConfig()
        self._data: OrderedDict[Hashable, Any] = OrderedDict()
        self.evictions = 0

    @property
    def max_entries(self) -> int:
        return self._config.max_entries

    def get(self, key: Hashable) -> Any | None:
        if key in self._data:
            # Hit - move to end (most recently used)
            self._data.move_to_end(key)
            return self._data[key]
        return None

    def set(self, key: Hashable, value: Any) -> None:
        if key in self._data:
            self._data.move_to_end(key)
            self._data[key] = value
            return

        while len(self._data) >= self._config.max_entries:
            self._evict_lru()

        self._data[key] = value

    def delete(self, key: Hashable) -> bool:
        if key in self._data:
            del self._data[key]
            return True
        return False

    def clear(self) -> None:
        self._data.clear()

    def has(self, key: Hashable) -> bool:
        return key in self._data

    def keys(self) -> list[Hashable]:
        return list(self._data.keys())

    def __len__(self) -> int:
        return len(self._data)

    def _evict_lru(self) -> None:
        """Evict the least recently used item (first item in OrderedDict)."""
        key, value = self._data.popitem(last=False)
        self.evictions += 1
        if self._config.on_evict is not None:
            self._config.on_evict(key, value)
