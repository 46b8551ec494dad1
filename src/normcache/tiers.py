"""
The two storage tiers of the normalized cache.

- DataTier: one bounded map per entity type, keyed by entity id
- RequestTier: one bounded map per request key, keyed by parameter
  fingerprint, holding id-shapes; plus a parallel map of response metadata

Both tiers create their maps lazily from capacity configuration and raise
MissingCapacityConfigError when none is available. They never evict on their
own; that is the bounded map's job.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Mapping
from typing import Any

from normcache.cache.base import BoundedMap, MapFactory
from normcache.config import CapacityConfig, DataTypeConfig
from normcache.exceptions import MissingCapacityConfigError
from normcache.logging import get_logger
from normcache.types import NO_METADATA, BareShape, IdShape, Metadata, is_sequence

logger = get_logger(__name__)

DEFAULT_ID_PROPERTY = "id"

_SCALARS = (str, bytes, int, float, bool)


def entity_id(entity: Any, id_property: str) -> Hashable | None:
    """Read an entity's id from a mapping key or an attribute.

    An id that cannot key a map (a list, say) counts as no id.
    """
    if isinstance(entity, Mapping):
        key = entity.get(id_property)
    elif entity is None or isinstance(entity, _SCALARS):
        return None
    else:
        key = getattr(entity, id_property, None)
    return key if isinstance(key, Hashable) else None


class DataTier:
    """Entities keyed by (type, id).

    Holds the only stored representation of each entity; request records
    refer to entities by id.
    """

    def __init__(
        self,
        map_factory: MapFactory,
        default_config: CapacityConfig | None,
        data_types: Mapping[str, DataTypeConfig],
    ) -> None:
        self._map_factory = map_factory
        self._default_config = default_config
        self._data_types = dict(data_types)
        self._maps: dict[str, BoundedMap] = {}
        self._setup()

    def _setup(self) -> None:
        """Create maps up front for every configured type that has capacity."""
        for data_type in self._data_types:
            config = self.config_for(data_type)
            if config is not None:
                self._maps[data_type] = self._map_factory(config)

    def id_property(self, data_type: str) -> str:
        type_config = self._data_types.get(data_type)
        return type_config.id_property if type_config else DEFAULT_ID_PROPERTY

    def config_for(self, data_type: str) -> CapacityConfig | None:
        """Per-type capacity config, falling back to the default."""
        type_config = self._data_types.get(data_type)
        if type_config is not None and type_config.cache is not None:
            return type_config.cache
        return self._default_config

    def types(self) -> list[str]:
        return list(self._maps)

    def map_for(self, data_type: str) -> BoundedMap | None:
        return self._maps.get(data_type)

    def check(self, data_type: str) -> None:
        """Raise if a map for data_type would need creating but cannot be."""
        if data_type not in self._maps and self.config_for(data_type) is None:
            raise MissingCapacityConfigError(
                "No capacity configuration for entity type",
                context={"data_type": data_type},
            )

    def ensure(self, data_type: str) -> BoundedMap:
        """Get the map for data_type, creating it on first use."""
        existing = self._maps.get(data_type)
        if existing is not None:
            return existing
        self.check(data_type)
        created = self._map_factory(self.config_for(data_type))  # type: ignore[arg-type]
        self._maps[data_type] = created
        logger.debug("Created data map", data_type=data_type)
        return created

    def get(self, data_type: str, entity_key: Hashable) -> Any | None:
        data_map = self._maps.get(data_type)
        if data_map is None:
            return None
        return data_map.get(entity_key)

    def lookup(self, data_type: str, ids: Iterable[Hashable]) -> list[Any] | None:
        """Fetch every id in order, or None if the type or any id is missing."""
        data_map = self._maps.get(data_type)
        if data_map is None:
            return None
        entities = []
        for entity_key in ids:
            entity = data_map.get(entity_key)
            if entity is None:
                return None
            entities.append(entity)
        return entities

    def upsert(self, data_type: str, data: Any) -> int:
        """Store one entity or a sequence of them.

        Entities without an id are skipped.

        Returns:
            Number of entities stored.
        """
        data_map = self.ensure(data_type)
        id_property = self.id_property(data_type)
        stored = 0
        for entity in data if is_sequence(data) else (data,):
            key = entity_id(entity, id_property)
            if key is None:
                continue
            data_map.set(key, entity)
            stored += 1
        return stored

    def delete(self, data_type: str, data: Any) -> int:
        """Remove entities given as ids, entities, or a list of either.

        A tuple is a single id, not a sequence of ids.

        Returns:
            Number of entities removed.
        """
        data_map = self._maps.get(data_type)
        if data_map is None:
            return 0
        id_property = self.id_property(data_type)
        removed = 0
        for item in data if isinstance(data, list) else (data,):
            key = entity_id(item, id_property)
            if key is None:
                key = item
            if isinstance(key, Hashable) and data_map.delete(key):
                removed += 1
        return removed

    def reset(self, data_type: str | None = None) -> None:
        """Clear one type's map, or drop every map when no type is given."""
        if data_type is None:
            self._maps.clear()
            self._setup()
            return
        data_map = self._maps.get(data_type)
        if data_map is None:
            self.ensure(data_type)
            return
        data_map.clear()


class RequestTier:
    """Id-shapes and metadata keyed by (request key, fingerprint)."""

    def __init__(self, map_factory: MapFactory, default_config: CapacityConfig | None) -> None:
        self._map_factory = map_factory
        self._default_config = default_config
        self._shapes: dict[str, BoundedMap] = {}
        self._metadata: dict[str, BoundedMap] = {}

    def keys(self) -> list[str]:
        return list(self._shapes)

    def has_key(self, request_key: str) -> bool:
        return request_key in self._shapes

    def config_for(self, cache: CapacityConfig | None = None) -> CapacityConfig | None:
        return cache if cache is not None else self._default_config

    def _require_config(self, request_key: str, cache: CapacityConfig | None) -> CapacityConfig:
        config = self.config_for(cache)
        if config is None:
            raise MissingCapacityConfigError(
                "No capacity configuration for request key",
                context={"request_key": request_key},
            )
        return config

    def check(self, request_key: str, cache: CapacityConfig | None = None) -> None:
        """Raise if request_key has no maps yet and none can be created."""
        if request_key not in self._shapes:
            self._require_config(request_key, cache)

    def ensure(self, request_key: str, cache: CapacityConfig | None = None) -> None:
        if request_key in self._shapes:
            return
        config = self._require_config(request_key, cache)
        self._shapes[request_key] = self._map_factory(config)
        # Evicting a fingerprint fires on_evict once, from the shape map
        self._metadata[request_key] = self._map_factory(config.model_copy(update={"on_evict": None}))
        logger.debug("Created request maps", max_entries=config.max_entries)

    def get_shape(self, request_key: str, fingerprint: str) -> IdShape | None:
        shapes = self._shapes.get(request_key)
        if shapes is None:
            return None
        return shapes.get(fingerprint)

    def get_metadata(self, request_key: str, fingerprint: str) -> Metadata | None:
        metadata = self._metadata.get(request_key)
        if metadata is None:
            return None
        return metadata.get(fingerprint)

    def store(
        self,
        request_key: str,
        fingerprint: str,
        shape: IdShape | None,
        metadata: Metadata,
        cache: CapacityConfig | None = None,
    ) -> None:
        """Record a fetched response's metadata and id-shape.

        A None shape removes any previous record at the fingerprint.
        """
        self.ensure(request_key, cache)
        self._metadata[request_key].set(fingerprint, metadata)
        if shape is None:
            self._shapes[request_key].delete(fingerprint)
        else:
            self._shapes[request_key].set(fingerprint, shape)

    def override(self, request_key: str, fingerprint: str, shape: IdShape) -> bool:
        """Point an existing key's fingerprint at a different id-shape.

        A record of a bare body stays bare when the new shape only names the
        request key.
        """
        if request_key not in self._shapes:
            return False
        existing = self._shapes[request_key].get(fingerprint)
        if isinstance(existing, BareShape) and set(shape) == {request_key}:
            shape = BareShape(shape)
        self._shapes[request_key].set(fingerprint, shape)
        if not self._metadata[request_key].has(fingerprint):
            self._metadata[request_key].set(fingerprint, NO_METADATA)
        return True

    def delete(self, request_key: str, fingerprint: str) -> None:
        if request_key not in self._shapes:
            return
        self._shapes[request_key].delete(fingerprint)
        self._metadata[request_key].delete(fingerprint)

    def reset(self, request_key: str | None = None) -> None:
        """Clear one key's records, or every key's when none is given."""
        if request_key is None:
            self._shapes.clear()
            self._metadata.clear()
            return
        if request_key not in self._shapes:
            return
        self._shapes[request_key].clear()
        self._metadata[request_key].clear()
