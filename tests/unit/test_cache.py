"""Tests for the role cache (corp_hr/core/cache.py)."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from corp_hr.core.cache import RoleCache, corporation_of, role_cache_key


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_role_cache_key_format():
    """Keys are "<corporation_id>:<true|false>"."""
    assert role_cache_key("98000001", True) == "98000001:true"
    assert role_cache_key("98000001", False) == "98000001:false"


def test_get_returns_none_on_miss():
    """Missing key returns None and counts a miss."""
    cache = RoleCache()

    assert cache.get("98000001:true") is None
    assert cache.stats()["misses"] == 1


def test_set_then_get():
    """Stored value is returned until the TTL passes."""
    clock = FakeClock()
    cache = RoleCache(ttl_seconds=300, timer=clock)

    cache.set("98000001:true", ["role"])
    clock.advance(299)

    assert cache.get("98000001:true") == ["role"]


def test_entry_expires_after_ttl():
    """Entries older than the TTL are gone."""
    clock = FakeClock()
    cache = RoleCache(ttl_seconds=300, timer=clock)

    cache.set("98000001:true", ["role"])
    clock.advance(301)

    assert cache.get("98000001:true") is None
    assert "98000001:true" not in cache


def test_invalidate_corporation_drops_both_keys():
    """Invalidation removes the active-only and the full listing."""
    cache = RoleCache()
    cache.set(role_cache_key("98000001", True), ["active"])
    cache.set(role_cache_key("98000001", False), ["all"])
    cache.set(role_cache_key("98000002", True), ["other corp"])

    cache.invalidate_corporation("98000001")

    assert role_cache_key("98000001", True) not in cache
    assert role_cache_key("98000001", False) not in cache
    assert cache.get(role_cache_key("98000002", True)) == ["other corp"]


def test_invalidate_missing_key_is_noop():
    """Invalidating a key that is not cached does not raise."""
    cache = RoleCache()

    cache.invalidate("nothing:true")
    cache.invalidate_corporation("nothing")

    assert len(cache) == 0


@pytest.mark.asyncio
async def test_get_or_compute_calls_compute_once():
    """Second read is served from the cache."""
    cache = RoleCache()
    compute = AsyncMock(return_value=["role"])

    first = await cache.get_or_compute("98000001:true", compute)
    second = await cache.get_or_compute("98000001:true", compute)

    assert first == second == ["role"]
    compute.assert_awaited_once()


@pytest.mark.asyncio
async def test_get_or_compute_caches_empty_list():
    """An empty listing is a valid cached value, not a miss."""
    cache = RoleCache()
    compute = AsyncMock(return_value=[])

    await cache.get_or_compute("98000001:true", compute)
    await cache.get_or_compute("98000001:true", compute)

    compute.assert_awaited_once()


@pytest.mark.asyncio
async def test_get_or_compute_recomputes_after_invalidation():
    """Invalidation forces the next read to hit the store."""
    cache = RoleCache()
    compute = AsyncMock(side_effect=[["old"], ["new"]])

    await cache.get_or_compute("98000001:true", compute)
    cache.invalidate_corporation("98000001")
    result = await cache.get_or_compute("98000001:true", compute)

    assert result == ["new"]
    assert compute.await_count == 2


@pytest.mark.asyncio
async def test_get_or_compute_does_not_cache_failures():
    """A failing compute leaves nothing behind."""
    cache = RoleCache()
    compute = AsyncMock(side_effect=RuntimeError("store down"))

    with pytest.raises(RuntimeError):
        await cache.get_or_compute("98000001:true", compute)

    assert "98000001:true" not in cache


def test_stats_and_clear():
    """Stats track hits and misses; clear resets everything."""
    cache = RoleCache(ttl_seconds=60)
    cache.set("a:true", [1])
    cache.get("a:true")
    cache.get("b:true")

    stats = cache.stats()
    assert stats["size"] == 1
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == 50.0
    assert stats["ttl_seconds"] == 60

    cache.clear()

    assert cache.stats() == {
        "size": 0,
        "maxsize": cache.stats()["maxsize"],
        "ttl_seconds": 60,
        "hits": 0,
        "misses": 0,
        "hit_rate": 0.0,
    }


def test_corporation_of_key():
    assert corporation_of(role_cache_key("98000001", False)) == "98000001"


class TestFillRacingInvalidation:
    """A read in flight across a grant/revoke must not store its stale listing."""

    @pytest.mark.asyncio
    async def test_stale_fill_is_not_stored(self):
        cache = RoleCache()
        store = ["role-1"]
        read_started = asyncio.Event()
        release_read = asyncio.Event()

        async def slow_read():
            snapshot = list(store)
            read_started.set()
            await release_read.wait()
            return snapshot

        reader = asyncio.create_task(cache.get_or_compute("98000001:true", slow_read))
        await read_started.wait()

        # Revoke commits and invalidates while the read is still in flight
        store.clear()
        cache.invalidate_corporation("98000001")
        release_read.set()

        # The in-flight caller still gets what it read
        assert await reader == ["role-1"]
        assert "98000001:true" not in cache

        async def fresh_read():
            return list(store)

        assert await cache.get_or_compute("98000001:true", fresh_read) == []

    @pytest.mark.asyncio
    async def test_other_corporation_fill_is_kept(self):
        cache = RoleCache()
        release_read = asyncio.Event()

        async def slow_read():
            await release_read.wait()
            return ["role-2"]

        reader = asyncio.create_task(cache.get_or_compute("98000002:true", slow_read))
        await asyncio.sleep(0)

        cache.invalidate_corporation("98000001")
        release_read.set()
        await reader

        assert cache.get("98000002:true") == ["role-2"]

    @pytest.mark.asyncio
    async def test_clear_discards_in_flight_fill(self):
        cache = RoleCache()
        release_read = asyncio.Event()

        async def slow_read():
            await release_read.wait()
            return ["role-1"]

        reader = asyncio.create_task(cache.get_or_compute("98000001:true", slow_read))
        await asyncio.sleep(0)

        cache.clear()
        release_read.set()
        await reader

        assert len(cache) == 0
