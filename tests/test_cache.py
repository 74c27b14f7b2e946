import asyncio

import pytest

from newsradar.services.cache import CacheManager


@pytest.mark.asyncio
async def test_set_then_get_returns_copy(clock):
    cache = CacheManager(clock=clock)
    value = {"mean": 10.0, "sample_count": 3}
    await cache.set_json("baseline:news:global:3:3", value, ttl_seconds=60)

    loaded = await cache.get_json("baseline:news:global:3:3")
    assert loaded == value
    loaded["mean"] = 99
    assert (await cache.get_json("baseline:news:global:3:3"))["mean"] == 10.0


@pytest.mark.asyncio
async def test_entries_expire_after_ttl(clock):
    cache = CacheManager(clock=clock)
    await cache.set_json("k", [1, 2], ttl_seconds=60)

    clock.advance(59)
    assert await cache.get_json("k") == [1, 2]
    clock.advance(1)
    assert await cache.get_json("k") is None


@pytest.mark.asyncio
async def test_mget_preserves_key_order(clock):
    cache = CacheManager(clock=clock)
    await cache.set_json("a", 1, ttl_seconds=60)
    await cache.set_json("c", 3, ttl_seconds=60)

    assert await cache.mget_json(["c", "b", "a"]) == [3, None, 1]
    stats = cache.get_stats()
    assert (stats.hits, stats.misses) == (2, 1)


@pytest.mark.asyncio
async def test_lru_eviction_drops_least_recently_read(clock):
    cache = CacheManager(max_size=2, clock=clock)
    await cache.set_json("a", 1, ttl_seconds=600)
    clock.advance(1)
    await cache.set_json("b", 2, ttl_seconds=600)
    clock.advance(1)
    await cache.get_json("a")
    clock.advance(1)
    await cache.set_json("c", 3, ttl_seconds=600)

    assert await cache.mget_json(["a", "b", "c"]) == [1, None, 3]
    assert cache.get_stats().evictions == 1


@pytest.mark.asyncio
async def test_cleanup_expired(clock):
    cache = CacheManager(clock=clock)
    await cache.set_json("short", 1, ttl_seconds=10)
    await cache.set_json("long", 2, ttl_seconds=1000)
    clock.advance(11)

    assert await cache.cleanup_expired() == 1
    assert cache.get_stats().size == 1
    assert cache.get_stats().to_dict()["size"] == 1


@pytest.mark.asyncio
async def test_concurrent_writers_do_not_lose_keys(clock):
    cache = CacheManager(clock=clock)
    await asyncio.gather(
        *(cache.set_json(f"key-{i}", i, ttl_seconds=60) for i in range(50))
    )
    values = await cache.mget_json([f"key-{i}" for i in range(50)])
    assert values == list(range(50))


def test_hit_rate_formatting():
    cache = CacheManager()
    stats = cache.get_stats()
    assert stats.hit_rate == 0.0
    stats.hits, stats.misses = 3, 1
    assert stats.to_dict()["hit_rate"] == "75.00%"
