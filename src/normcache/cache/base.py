"""
Base class for capacity-bounded maps.

The tiers never implement eviction themselves. Every map they hold is built
by a MapFactory from a CapacityConfig, so callers can inject their own
eviction policy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Hashable
from typing import Any

from normcache.config import CapacityConfig


class BoundedMap(ABC):
    """Abstract interface for capacity-bounded maps."""

    @abstractmethod
    def get(self, key: Hashable) -> Any | None:
        """Get a value, or None if the key is absent."""
        ...

    @abstractmethod
    def set(self, key: Hashable, value: Any) -> None:
        """Set a value, evicting per the map's policy when full."""
        ...

    @abstractmethod
    def delete(self, key: Hashable) -> bool:
        """Delete a key. Returns whether it was present."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry."""
        ...

    @abstractmethod
    def has(self, key: Hashable) -> bool:
        """Check if a key is present without affecting eviction order."""
        ...

    @abstractmethod
    def keys(self) -> list[Hashable]:
        """Return the current keys."""
        ...

    def __contains__(self, key: object) -> bool:
        return self.has(key)  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self.keys())


MapFactory = Callable[[CapacityConfig], BoundedMap]
