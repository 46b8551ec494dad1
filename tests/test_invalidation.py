"""
Tests for the invalidation API and inspection helpers.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from normcache.fingerprint import fingerprint
from normcache.normalized import NormalizedCache
from normcache.types import NO_METADATA, Metadata, RequestOptions, ScalarRef, SequenceRef


@pytest.fixture
def primed(cache: NormalizedCache) -> NormalizedCache:
    """Provide a cache holding two requests over two entity types."""
    cache.set_caches(
        "users",
        fingerprint([]),
        {"body": {"users": [{"id": 1}, {"id": 2}]}, "metadata": {"page": 1}},
    )
    cache.set_caches("users", fingerprint([2]), {"body": {"users": {"id": 2}}})
    cache.set_caches("posts", fingerprint([]), {"body": {"posts": [{"id": 10}]}})
    return cache


class TestResetData:
    """Tests for reset_data()."""

    def test_reset_all(self, primed: NormalizedCache) -> None:
        """Test that no type clears every entity."""
        primed.reset_data()

        assert primed.body("users", []) is None
        assert primed.body("posts", []) is None

    def test_reset_one_type(self, primed: NormalizedCache) -> None:
        """Test that a type clears only that type's entities."""
        primed.reset_data("users")

        assert primed.body("users", []) is None
        assert primed.body("users", [2]) is None
        assert primed.body("posts", []) == {"posts": [{"id": 10}]}

    def test_reset_unknown_type_creates_empty_map(self, cache: NormalizedCache) -> None:
        """Test that resetting a type never seen leaves it empty and usable."""
        cache.reset_data("tags")
        cache.reset_data("tags", [{"id": "t1"}])

        cache.set_caches("tags", fingerprint([]), {"body": {"tags": [{"id": "t1"}]}})
        assert cache.body("tags", []) == {"tags": [{"id": "t1"}]}

    def test_upsert_updates_cached_requests(self, primed: NormalizedCache) -> None:
        """Test that pushing an entity update is visible through every request."""
        primed.reset_data("users", {"id": 2, "name": "renamed"})

        assert primed.body("users", []) == {"users": [{"id": 1}, {"id": 2, "name": "renamed"}]}
        assert primed.body("users", [2]) == {"users": {"id": 2, "name": "renamed"}}

    @pytest.mark.asyncio
    async def test_upsert_sequence_into_new_type(self, cache: NormalizedCache) -> None:
        """Test that a sequence upsert creates the type's map."""
        cache.reset_data("tags", [{"id": "a"}, {"id": "b"}])
        fetch = AsyncMock()

        result = await cache.get_by_id("tags", "b", fetch, [], RequestOptions(name="tags"))

        assert result == {"tags": {"id": "b"}}
        fetch.assert_not_awaited()


class TestResetRequests:
    """Tests for reset_requests()."""

    def test_reset_all(self, primed: NormalizedCache) -> None:
        """Test that no key clears both request and metadata records."""
        primed.reset_requests()

        assert primed.body("users", []) is None
        assert primed.head("users", []) is None
        assert primed.head("posts", []) is None

    def test_reset_one_key(self, primed: NormalizedCache) -> None:
        """Test that a key clears only that key's records."""
        primed.reset_requests("users")

        assert primed.body("users", []) is None
        assert primed.body("users", [2]) is None
        assert primed.body("posts", []) == {"posts": [{"id": 10}]}

    def test_reset_by_function(self, primed: NormalizedCache) -> None:
        """Test that the fetch function can stand in for its key."""

        async def posts() -> None:
            return None

        primed.reset_requests(posts)

        assert primed.body("posts", []) is None
        assert primed.body("users", []) is not None

    def test_delete_one_fingerprint(self, primed: NormalizedCache) -> None:
        """Test that key and params delete just that record."""
        primed.reset_requests("users", [2])

        assert primed.body("users", [2]) is None
        assert primed.head("users", [2]) is None
        assert primed.body("users", []) == {"users": [{"id": 1}, {"id": 2}]}

    def test_reset_unknown_key_is_noop(self, primed: NormalizedCache) -> None:
        """Test that unknown keys are ignored."""
        primed.reset_requests("nope")
        primed.reset_requests("nope", [])
        primed.reset_requests("nope", [], {"users": [1]})

        assert primed.head("nope", []) is None
        assert primed.body("users", []) is not None

    @pytest.mark.asyncio
    async def test_override_points_request_at_other_entities(self, cache: NormalizedCache) -> None:
        """Test that an id override is served without refetching."""
        fetch = AsyncMock(
            return_value={"body": [{"id": 0}, {"id": 1}], "metadata": {"content-type": "application/json"}}
        )
        options = RequestOptions(
            name="K",
            format=lambda body: {"objects": body},
            unformat=lambda body: body["objects"],
        )
        await cache.get(fetch, [], options)
        await asyncio.sleep(0)

        cache.reset_requests("K", [], {"objects": [1]})
        response = await cache.get(fetch, [], options)

        assert response.body == [{"id": 1}]
        assert response.metadata == {"content-type": "application/json"}
        assert fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_override_bare_body(self, cache: NormalizedCache) -> None:
        """Test that an override of a bare list body still comes back as a list."""
        fetch = AsyncMock(return_value={"body": [{"id": 0}, {"id": 1}]})
        options = RequestOptions(name="K")
        await cache.get(fetch, [], options)
        await asyncio.sleep(0)

        cache.reset_requests("K", [], {"K": [1]})

        assert (await cache.get(fetch, [], options)).body == [{"id": 1}]
        assert fetch.await_count == 1

    def test_override_with_scalar_and_explicit_refs(self, primed: NormalizedCache) -> None:
        """Test that overrides accept raw ids and tagged references."""
        primed.reset_requests("users", [], {"users": 1})
        assert primed.body("users", []) == {"users": {"id": 1}}

        primed.reset_requests("users", [], {"users": SequenceRef((2, 1))})
        assert primed.body("users", []) == {"users": [{"id": 2}, {"id": 1}]}

        primed.reset_requests("users", [], {"users": ScalarRef(2)})
        assert primed.body("users", []) == {"users": {"id": 2}}

    def test_override_to_missing_entity_misses(self, primed: NormalizedCache) -> None:
        """Test that an override referencing an absent entity is not served."""
        primed.reset_requests("users", [], {"users": [1, 99]})

        assert primed.body("users", []) is None

    def test_override_new_fingerprint_records_empty_metadata(
        self, primed: NormalizedCache
    ) -> None:
        """Test that overriding a fingerprint never fetched makes it servable."""
        primed.reset_requests("users", [1], {"users": 1})

        assert primed.head("users", [1]) is NO_METADATA
        assert primed.body("users", [1]) == {"users": {"id": 1}}


class TestDeleteData:
    """Tests for delete_data()."""

    def test_delete_by_id(self, primed: NormalizedCache) -> None:
        """Test deleting by id."""
        assert primed.delete_data("users", 1) == 1
        assert primed.body("users", []) is None
        assert primed.body("users", [2]) == {"users": {"id": 2}}

    def test_delete_by_entity(self, primed: NormalizedCache) -> None:
        """Test deleting by entity."""
        assert primed.delete_data("users", {"id": 2, "name": "ignored"}) == 1
        assert primed.body("users", [2]) is None

    def test_delete_sequence(self, primed: NormalizedCache) -> None:
        """Test deleting a mix of ids and entities."""
        assert primed.delete_data("users", [1, {"id": 2}, 3]) == 2

    def test_delete_unknown_type(self, primed: NormalizedCache) -> None:
        """Test that unknown types delete nothing."""
        assert primed.delete_data("tags", 1) == 0

    def test_delete_leaves_request_records(self, primed: NormalizedCache) -> None:
        """Test that deleting entities does not touch the request tier."""
        primed.delete_data("posts", 10)

        assert primed.head("posts", []) is NO_METADATA
        assert primed.body("posts", []) is None

        primed.reset_data("posts", {"id": 10, "title": "back"})
        assert primed.body("posts", []) == {"posts": [{"id": 10, "title": "back"}]}


class TestInspection:
    """Tests for head() and body()."""

    def test_head_distinguishes_never_fetched_from_no_metadata(
        self, primed: NormalizedCache
    ) -> None:
        """Test the metadata slot states."""
        assert primed.head("users", []) == Metadata({"page": 1})
        assert primed.head("users", [2]) is NO_METADATA
        assert primed.head("users", [3]) is None
        assert primed.head("missing", []) is None
