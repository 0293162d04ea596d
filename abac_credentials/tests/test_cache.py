"""Tests for the identity-scoped credential cache."""

from __future__ import annotations

import threading

import pytest

from abac_credentials.cache import (
    MAX_CACHE_AGE_MS,
    MAX_CACHE_SIZE,
    IdentityScopedCache,
    build_cache_key,
)
from abac_credentials.identity import CallerIdentity


def test_get_returns_fresh_entry(clock) -> None:
    """An entry is served until it is older than the TTL."""

    cache = IdentityScopedCache(clock=clock)
    cache.put("k", "v")

    clock.advance(MAX_CACHE_AGE_MS)
    entry = cache.get("k")
    assert entry is not None
    assert entry.value == "v"

    clock.advance(1)
    assert cache.get("k") is None


def test_stale_entries_stay_until_next_insert(clock) -> None:
    """Expired entries are not swept until an insertion happens."""

    cache = IdentityScopedCache(clock=clock)
    cache.put("old", "1")
    clock.advance(MAX_CACHE_AGE_MS + 1)

    assert "old" in cache
    cache.put("new", "2")
    assert "old" not in cache
    assert list(cache.keys()) == ["new"]


def test_full_cache_evicts_earliest_inserted_entry(clock) -> None:
    """Inserting a 101st key with nothing expired drops exactly the first key."""

    cache = IdentityScopedCache(clock=clock)
    for i in range(MAX_CACHE_SIZE):
        cache.put(f"key-{i}", str(i))
        clock.advance(1)

    # Reading the first key must not protect it from eviction.
    assert cache.get("key-0") is not None

    cache.put("key-100", "100")

    assert len(cache) == MAX_CACHE_SIZE
    assert "key-0" not in cache
    assert "key-1" in cache
    assert "key-100" in cache


def test_expired_entries_are_evicted_instead_of_oldest(clock) -> None:
    """When something expired, the earliest fresh entry survives a full insert."""

    cache = IdentityScopedCache(max_size=3, clock=clock)
    cache.put("a", "1")
    clock.advance(10)
    cache.add_entry("stale", "x", created_at=clock.now - MAX_CACHE_AGE_MS - 1)
    cache.put("b", "2")
    assert list(cache.keys()) == ["a", "b"]

    cache.add_entry("stale", "x", created_at=clock.now - MAX_CACHE_AGE_MS - 1)
    cache.put("c", "3")
    assert list(cache.keys()) == ["a", "b", "c"]


def test_put_overwrites_existing_key(clock) -> None:
    """Re-inserting a key replaces the entry wholesale."""

    cache = IdentityScopedCache(clock=clock)
    first = cache.put("k", "v1")
    clock.advance(5)
    second = cache.put("k", "v2")

    assert len(cache) == 1
    assert cache.get("k") == second
    assert first.value == "v1"
    assert second.created_at == first.created_at + 5


def test_get_or_load_calls_loader_once_within_ttl(clock) -> None:
    """A second lookup inside the TTL is served from the cache."""

    cache = IdentityScopedCache(clock=clock)
    calls = []

    def loader() -> str:
        calls.append(1)
        return f"value-{len(calls)}"

    assert cache.get_or_load("k", loader) == "value-1"
    assert cache.get_or_load("k", loader) == "value-1"
    assert len(calls) == 1

    clock.advance(MAX_CACHE_AGE_MS + 1)
    assert cache.get_or_load("k", loader) == "value-2"
    assert len(calls) == 2
    assert len(cache) == 1


def test_get_or_load_failure_leaves_cache_unchanged(clock) -> None:
    """A failed refresh neither stores anything nor serves the stale value."""

    cache = IdentityScopedCache(clock=clock)
    cache.put("k", "old")
    clock.advance(MAX_CACHE_AGE_MS + 1)

    def loader() -> str:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        cache.get_or_load("k", loader)
    assert cache.get("k") is None


def test_get_or_load_is_serialized_across_threads(clock) -> None:
    """Concurrent misses for one key result in a single load."""

    cache = IdentityScopedCache(clock=clock)
    calls = []
    start = threading.Barrier(8)

    def loader() -> str:
        calls.append(1)
        return "v"

    def worker() -> None:
        start.wait()
        cache.get_or_load("k", loader)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(calls) == 1


def test_cache_key_distinguishes_tags() -> None:
    """Different tag values for the same resource produce different keys."""

    arn = "arn:aws:iam::123456789012:user/alice"
    team_x = CallerIdentity(arn=arn, tags={"team": "x"})
    team_y = CallerIdentity(arn=arn, tags={"team": "y"})

    assert build_cache_key(("secret",), team_x) != build_cache_key(("secret",), team_y)
    assert build_cache_key(("secret",), team_x) == build_cache_key(
        ("secret",), CallerIdentity(arn=arn, tags={"team": "x"})
    )


def test_cache_key_has_no_concatenation_collisions() -> None:
    """Shifting characters between components changes the key."""

    identity = CallerIdentity(arn="arn", tags={"ab": "c"})
    shifted = CallerIdentity(arn="arn", tags={"a": "bc"})

    assert build_cache_key(("ab", "c"), identity) != build_cache_key(("a", "bc"), identity)
    assert build_cache_key(("r",), identity) != build_cache_key(("r",), shifted)


def test_cache_key_depends_on_tag_order() -> None:
    """Tags are encoded in iteration order."""

    first = CallerIdentity(arn="arn", tags={"a": "1", "b": "2"})
    second = CallerIdentity(arn="arn", tags={"b": "2", "a": "1"})

    assert build_cache_key(("r",), first) != build_cache_key(("r",), second)
