"""
Normalized response cache.

Wraps asynchronous fetch functions. A successful fetch is decomposed into
entities (stored once per type and id in the data tier) and an id-shape
(stored per request key and parameter fingerprint in the request tier). A
later call with the same parameters is answered by rebuilding the body from
the current entities.

The two tiers evict independently, so a request record may outlive the
entities it points at. Reconstitution treats any dangling reference as a
miss for the whole request; a partially rebuilt body is never returned.

Concurrency model (single event loop, no locks):
- The caller of ``get`` receives the fetch result as soon as the fetch
  function returns. Storing it is scheduled on the loop and not awaited, so
  a second ``get`` issued before the loop runs again still misses.
- Identical concurrent requests are not coalesced; each one fetches.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Hashable, Mapping, Sequence
from typing import Any

from normcache.cache.base import MapFactory
from normcache.cache.lru import LRUMap
from normcache.config import CapacityConfig, DataTypeConfig, Settings, get_settings
from normcache.exceptions import MissingKeyError
from normcache.fingerprint import fingerprint
from normcache.logging import get_logger, log_context, set_log_level
from normcache.tiers import DataTier, RequestTier, entity_id
from normcache.types import (
    NO_METADATA,
    BareShape,
    CacheStats,
    IdShape,
    Metadata,
    RequestOptions,
    Response,
    ScalarRef,
    SequenceRef,
    is_sequence,
    shape_from_ids,
)

logger = get_logger(__name__)

FetchFn = Callable[..., Awaitable[Any]]

DEFAULT_CAPACITY = CapacityConfig()


def request_key_for(fn: Callable[..., Any] | None, options: RequestOptions) -> str:
    """Resolve the request key from the ``name`` option or the function's name.

    Raises:
        MissingKeyError: If neither gives a usable name.
    """
    if options.name:
        return options.name
    name = getattr(fn, "__name__", None)
    if not name or name == "<lambda>":
        raise MissingKeyError(
            "No request key: pass options.name or use a named fetch function",
            context={"fn": repr(fn)},
        )
    return name


class NormalizedCache:
    """Two-tier cache of entities and request shapes.

    One instance is created per application, configured at construction:

        cache = NormalizedCache(
            data_types={"users": DataTypeConfig(id_property="uid")},
        )
        response = await cache.get(fetch_users, [{"team": 3}])
    """

    def __init__(
        self,
        default_data_cache: CapacityConfig | None = DEFAULT_CAPACITY,
        default_request_cache: CapacityConfig | None = DEFAULT_CAPACITY,
        data_types: Mapping[str, DataTypeConfig | Mapping[str, Any]] | None = None,
        map_factory: MapFactory = LRUMap,
    ) -> None:
        """Initialize the cache.

        Args:
            default_data_cache: Capacity of entity maps for types without their own.
            default_request_cache: Capacity of request maps for calls without a
                ``cache`` option.
            data_types: Per-type id property and capacity overrides.
            map_factory: Builds every bounded map from a CapacityConfig.
        """
        self.data_types = {
            name: DataTypeConfig.model_validate(cfg) for name, cfg in (data_types or {}).items()
        }
        self._data = DataTier(map_factory, default_data_cache, self.data_types)
        self._requests = RequestTier(map_factory, default_request_cache)
        self._stats = CacheStats()

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        map_factory: MapFactory = LRUMap,
    ) -> NormalizedCache:
        """Build a cache from environment settings.

        Also applies ``LOG_LEVEL`` to the normcache loggers.
        """
        settings = settings or get_settings()
        set_log_level(settings.LOG_LEVEL)
        return cls(
            default_data_cache=settings.default_data_cache,
            default_request_cache=settings.default_request_cache,
            data_types=settings.DATA_TYPES,
            map_factory=map_factory,
        )

    @property
    def stats(self) -> CacheStats:
        return self._stats.snapshot()

    def id_property(self, data_type: str) -> str:
        return self._data.id_property(data_type)

    def data_cache_config(self, data_type: str) -> CapacityConfig | None:
        return self._data.config_for(data_type)

    # Read path

    async def get(
        self,
        fn: FetchFn,
        params: Sequence[Any] | None = None,
        options: RequestOptions | None = None,
    ) -> Response:
        """Return a cached response for ``fn(*params)`` or fetch it.

        Args:
            fn: Async fetch function. It may return a Response, a
                ``{"body": ..., "metadata": ...}`` mapping, or a bare body.
            params: Positional arguments for fn; also fingerprinted.
            options: Per-call options.

        Returns:
            Response whose body is the fetched body on a miss, or the
            reconstituted body passed through ``options.unformat`` on a hit.

        Raises:
            MissingKeyError: If no request key can be resolved.
            MissingCapacityConfigError: If the key is new and has no capacity config.
            Exception: Whatever fn raises, unchanged.
        """
        options = options or RequestOptions()
        key = request_key_for(fn, options)
        args = tuple(params) if params is not None else ()
        params_hash = fingerprint(params)

        with log_context(request_key=key, fingerprint=params_hash):
            if not options.passes_rules(args):
                self._stats.bypasses += 1
                logger.debug("Rule failed, bypassing cache")
                return Response.from_fetch(await fn(*args))

            cached = self.load_from_cache(key, params_hash)
            if cached is not None:
                self._stats.hits += 1
                logger.debug("Cache hit")
                if options.unformat is not None:
                    return Response(options.unformat(cached.body), cached.metadata)
                return cached

            self._stats.misses += 1
            self._requests.check(key, options.cache)
            logger.debug("Cache miss, fetching")

            result = Response.from_fetch(await fn(*args))
            asyncio.get_running_loop().call_soon(
                self._write_back, key, params_hash, result, options
            )
            return result

    async def get_by_id(
        self,
        data_type: str,
        id: Hashable,
        fn: FetchFn,
        params: Sequence[Any] | None = None,
        options: RequestOptions | None = None,
    ) -> Any:
        """Return one entity's body directly from the data tier if present.

        Falls back to ``get(fn, params, options)`` and returns its body.
        """
        entity = self._data.get(data_type, id)
        if entity is not None:
            logger.debug("Entity hit", data_type=data_type, id=id)
            body = {data_type: entity}
            if options is not None and options.unformat is not None:
                return options.unformat(body)
            return body

        response = await self.get(fn, params, options)
        return response.body

    def load_from_cache(self, request_key: str, params_hash: str) -> Response | None:
        """Rebuild a response from its stored id-shape and current entities.

        Returns None unless the id-shape, its metadata slot, and every entity
        it references are all present.
        """
        shape = self._requests.get_shape(request_key, params_hash)
        if shape is None:
            return None

        metadata = self._requests.get_metadata(request_key, params_hash)
        if metadata is None:
            return None

        body: dict[str, Any] = {}
        for data_type, ref in shape.items():
            entities = self._data.lookup(data_type, ref.members)
            if entities is None:
                self._stats.stale += 1
                logger.debug("Dangling entity reference", data_type=data_type)
                return None
            body[data_type] = entities[0] if isinstance(ref, ScalarRef) else entities

        if isinstance(shape, BareShape):
            return Response(body=body[request_key], metadata=metadata.value)
        return Response(body=body, metadata=metadata.value)

    # Write path

    def _write_back(
        self,
        request_key: str,
        params_hash: str,
        result: Response,
        options: RequestOptions,
    ) -> None:
        """Store a fetched response; runs on the loop after the caller resumes."""
        try:
            body = options.format(result.body) if options.format is not None else result.body
            self.set_caches(request_key, params_hash, Response(body, result.metadata), options.cache)
        except Exception:
            self._stats.write_errors += 1
            logger.exception("Failed to cache response")

    def set_caches(
        self,
        request_key: str,
        params_hash: str,
        data: Response | Mapping[str, Any],
        cache: CapacityConfig | None = None,
    ) -> int:
        """Decompose a formatted response into both tiers.

        Args:
            request_key: Request key to record the id-shape under.
            params_hash: Parameter fingerprint.
            data: Response (or envelope mapping) whose body maps entity type
                to one entity or a sequence of entities. Any other body is
                stored under the request key as its entity type and comes
                back unwrapped.
            cache: Capacity config for the request key if it is new.

        Returns:
            Number of entities stored.

        Raises:
            MissingCapacityConfigError: Before any tier is modified, if a new
                request key or entity type has no capacity configuration.
        """
        response = Response.from_fetch(data)
        body = response.body
        bare = not isinstance(body, Mapping)
        if bare:
            logger.debug("Body is not keyed by entity type, storing under request key")
            body = {request_key: body}

        self._requests.check(request_key, cache)
        for data_type in body:
            self._data.check(data_type)

        # Entities first: a request record never references an unstored id
        stored = sum(self._data.upsert(data_type, value) for data_type, value in body.items())

        metadata = Metadata(response.metadata) if response.metadata is not None else NO_METADATA
        shape = self._derive_shape(body)
        if shape is None:
            logger.debug("Response references entities without ids, request not recorded")
        elif bare:
            shape = BareShape(shape)
        self._requests.store(request_key, params_hash, shape, metadata, cache)

        self._stats.writes += 1
        logger.debug("Cached response", types=len(body), entities=stored)
        return stored

    def _derive_shape(self, body: Mapping[str, Any]) -> IdShape | None:
        shape: IdShape = {}
        for data_type, value in body.items():
            id_property = self._data.id_property(data_type)
            if is_sequence(value):
                ids = tuple(entity_id(entity, id_property) for entity in value)
                if any(entity_key is None for entity_key in ids):
                    return None
                shape[data_type] = SequenceRef(ids)
            else:
                entity_key = entity_id(value, id_property)
                if entity_key is None:
                    return None
                shape[data_type] = ScalarRef(entity_key)
        return shape

    # Invalidation

    def reset_data(self, data_type: str | None = None, data: Any = None) -> None:
        """Clear or update the data tier.

        - No type: drop every entity of every type.
        - Type only: clear that type's map.
        - Type and data: upsert the entity or sequence of entities.
        """
        if data_type is None:
            self._data.reset()
            logger.info("Data tier cleared")
            return
        if data is None:
            self._data.reset(data_type)
            logger.debug("Data type cleared", data_type=data_type)
            return
        self._data.upsert(data_type, data)

    def reset_requests(
        self,
        key: str | Callable[..., Any] | None = None,
        params: Sequence[Any] | None = None,
        ids: IdShape | Mapping[str, Any] | None = None,
    ) -> None:
        """Clear or override request records.

        - No key: drop every request record and metadata slot.
        - Key only: clear that key's records.
        - Key and params: delete the record at the params' fingerprint.
        - Key, params and ids: point that record at ``{type: id | [ids]}``
          without refetching.

        ``key`` may be the fetch function itself.
        """
        if key is not None and not isinstance(key, str):
            key = getattr(key, "__name__", None)

        if key is None:
            self._requests.reset()
            logger.info("Request tier cleared")
            return

        if params is None:
            self._requests.reset(key)
            return

        params_hash = fingerprint(params)
        if ids is None:
            self._requests.delete(key, params_hash)
            return

        if not self._requests.override(key, params_hash, shape_from_ids(ids)):
            logger.debug("Override for unknown request key ignored", request_key=key)

    def delete_data(self, data_type: str, data: Any) -> int:
        """Remove entities by id, by entity, or by a list of either.

        Request records pointing at them are left alone and will miss.

        Returns:
            Number of entities removed.
        """
        return self._data.delete(data_type, data)

    # Inspection

    def head(self, key: str, params: Sequence[Any] | None = None) -> Metadata | None:
        """Stored metadata slot for a request, or None if never cached."""
        return self._requests.get_metadata(key, fingerprint(params))

    def body(self, key: str, params: Sequence[Any] | None = None) -> Any | None:
        """Reconstituted body for a request, or None on a miss."""
        cached = self.load_from_cache(key, fingerprint(params))
        return cached.body if cached is not None else None
