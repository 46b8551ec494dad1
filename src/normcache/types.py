"""
Core types for the normalized response cache.

This module defines the data structures shared by the tiers and the cache:
- Tagged id-shape variants (ScalarRef, SequenceRef) recorded per request
- Metadata wrapper distinguishing "fetched with no metadata" from "not cached"
- Response envelope returned to callers on hits and misses alike
- RequestOptions carrying the per-call hooks
- CacheStats counters
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

from normcache.config import CapacityConfig


@dataclass(frozen=True)
class ScalarRef:
    """A response field holding a single entity."""

    id: Hashable

    @property
    def members(self) -> tuple[Hashable, ...]:
        return (self.id,)


@dataclass(frozen=True)
class SequenceRef:
    """A response field holding an ordered sequence of entities."""

    ids: tuple[Hashable, ...]

    @property
    def members(self) -> tuple[Hashable, ...]:
        return self.ids


EntityRef = Union[ScalarRef, SequenceRef]

# entity type -> reference; never holds entity bodies
IdShape = dict[str, EntityRef]


class BareShape(dict[str, EntityRef]):
    """Id-shape of a body that was not keyed by entity type.

    Holds a single entry under the request key; reconstitution unwraps it.
    """


def is_sequence(value: Any) -> bool:
    """Whether a response field holds many entities rather than one."""
    return isinstance(value, (list, tuple))


def ref_from_ids(value: Any) -> EntityRef:
    """Build a reference from a raw id or sequence of ids."""
    if isinstance(value, (ScalarRef, SequenceRef)):
        return value
    if is_sequence(value):
        return SequenceRef(tuple(value))
    return ScalarRef(value)


def shape_from_ids(ids: Mapping[str, Any]) -> IdShape:
    """Build an id-shape from ``{type: id | [ids]}``.

    Example:
        >>> shape_from_ids({"users": [1, 2], "org": 7})
        {'users': SequenceRef(ids=(1, 2)), 'org': ScalarRef(id=7)}
    """
    return {data_type: ref_from_ids(value) for data_type, value in ids.items()}


@dataclass(frozen=True)
class Metadata:
    """Stored response metadata, e.g. transport headers.

    A present ``Metadata`` whose value is None means the response was cached
    with no metadata; an absent entry means nothing is cached.
    """

    value: Any = None

    @property
    def is_empty(self) -> bool:
        return self.value is None


NO_METADATA = Metadata(None)


@dataclass(frozen=True)
class Response:
    """Result of a cached read: the body plus whatever metadata came with it."""

    body: Any
    metadata: Any = None

    @classmethod
    def from_fetch(cls, result: Any) -> Response:
        """Normalize a fetch function's result.

        A Response, or a mapping holding ``body`` and optionally ``metadata``
        (and nothing else), is an envelope; any other value is a bare body.
        """
        if isinstance(result, Response):
            return result
        if isinstance(result, Mapping) and "body" in result and set(result) <= {"body", "metadata"}:
            return cls(body=result["body"], metadata=result.get("metadata"))
        return cls(body=result)


Rule = Callable[[Sequence[Any]], bool]
Transform = Callable[[Any], Any]


@dataclass
class RequestOptions:
    """Per-call options for ``NormalizedCache.get``.

    Attributes:
        name: Request key; defaults to the fetch function's ``__name__``.
        rules: Predicates over the params; any falsy result bypasses the cache.
        format: Applied to the fetched body before it is decomposed.
        unformat: Applied to a reconstituted body before it is returned.
        cache: Capacity config for this request key's map on first write.
    """

    name: str | None = None
    rules: Sequence[Rule] = ()
    format: Transform | None = None
    unformat: Transform | None = None
    cache: CapacityConfig | None = None

    def passes_rules(self, params: Sequence[Any]) -> bool:
        return all(rule(params) for rule in self.rules)


@dataclass
class CacheStats:
    """Statistics about cache performance."""

    hits: int = 0
    misses: int = 0
    stale: int = 0  # misses caused by a dangling entity reference
    bypasses: int = 0
    writes: int = 0
    write_errors: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def snapshot(self) -> CacheStats:
        return CacheStats(**self.__dict__)
