import asyncio
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from errors import NetworkError
from models import ListingPage
from services.cache_service import CacheService, MemoryCacheBackend, build_backend, make_cache_key
from services.normalizer import to_summary


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class BrokenBackend:
    def __init__(self):
        self.get_calls = 0

    async def get(self, key):
        self.get_calls += 1
        raise RedisConnectionError("redis down")

    async def set(self, key, value, ttl_seconds):
        raise RedisConnectionError("redis down")

    async def delete(self, key):
        raise RedisConnectionError("redis down")

    async def close(self):
        raise RedisConnectionError("redis down")


class Counter:
    def __init__(self, value):
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.value


def _page():
    return ListingPage(data=[to_summary({"slug": "a", "title": "A"}, "otakudesu")], has_next=True)


def _listing_codec():
    return {"encode": lambda page: page.to_dict(), "decode": ListingPage.from_dict}


def test_cache_key_serializes_params_sorted_and_compact():
    assert make_cache_key("otakudesu", "search", {"page": 1, "query": "x"}) == 'otakudesu:search:{"page":1,"query":"x"}'
    assert make_cache_key("lk21", "list_latest", {"page": 2}) == make_cache_key("lk21", "list_latest", {"page": 2})


def test_hit_within_ttl_skips_compute():
    clock = FakeClock()
    cache = CacheService(MemoryCacheBackend(), clock=clock)
    compute = Counter(_page())

    async def scenario():
        first = await cache.get_or_compute("otakudesu", "list_latest", {"page": 1}, compute, 300, **_listing_codec())
        clock.now += 299
        second = await cache.get_or_compute("otakudesu", "list_latest", {"page": 1}, compute, 300, **_listing_codec())
        return first, second

    first, second = asyncio.run(scenario())

    assert compute.calls == 1
    assert second == first


def test_entry_at_expiry_is_a_miss():
    clock = FakeClock()
    cache = CacheService(MemoryCacheBackend(), clock=clock)
    compute = Counter(_page())

    async def scenario():
        await cache.get_or_compute("otakudesu", "list_latest", {"page": 1}, compute, 300, **_listing_codec())
        clock.now += 300
        await cache.get_or_compute("otakudesu", "list_latest", {"page": 1}, compute, 300, **_listing_codec())

    asyncio.run(scenario())

    assert compute.calls == 2


def test_none_results_are_not_stored():
    cache = CacheService(MemoryCacheBackend())
    compute = Counter(None)

    async def scenario():
        await cache.get_or_compute("lk21", "get_detail", {"slug": "x"}, compute, 3600)
        return await cache.get_or_compute("lk21", "get_detail", {"slug": "x"}, compute, 3600)

    assert asyncio.run(scenario()) is None
    assert compute.calls == 2


def test_compute_errors_propagate_and_are_not_cached():
    cache = CacheService(MemoryCacheBackend())

    async def failing():
        raise NetworkError("down")

    with pytest.raises(NetworkError):
        asyncio.run(cache.get_or_compute("lk21", "get_detail", {"slug": "x"}, failing, 3600))

    compute = Counter({"ok": True})
    assert asyncio.run(cache.get_or_compute("lk21", "get_detail", {"slug": "x"}, compute, 3600)) == {"ok": True}
    assert compute.calls == 1


def test_backend_failure_degrades_to_pass_through(caplog):
    backend = BrokenBackend()
    cache = CacheService(backend)
    compute = Counter({"ok": True})

    async def scenario():
        await cache.get_or_compute("melolo", "search", {"query": "x"}, compute, 300)
        await cache.get_or_compute("melolo", "search", {"query": "x"}, compute, 300)
        await cache.invalidate("melolo", "search", {"query": "x"})
        await cache.close()

    asyncio.run(scenario())

    assert compute.calls == 2
    assert backend.get_calls == 2
    assert "Cache read failed" in caplog.text


def test_disabled_cache_always_computes():
    cache = CacheService(None)
    compute = Counter(1)

    async def scenario():
        await cache.get_or_compute("s", "op", None, compute, 300)
        await cache.get_or_compute("s", "op", None, compute, 300)

    asyncio.run(scenario())

    assert compute.calls == 2
    assert build_backend("none") is None
    assert isinstance(build_backend("memory"), MemoryCacheBackend)


def test_invalidate_drops_entry():
    cache = CacheService(MemoryCacheBackend())
    compute = Counter({"v": 1})

    async def scenario():
        await cache.get_or_compute("s", "op", {"a": 1}, compute, 300)
        await cache.invalidate("s", "op", {"a": 1})
        await cache.get_or_compute("s", "op", {"a": 1}, compute, 300)

    asyncio.run(scenario())

    assert compute.calls == 2


def test_memory_backend_prunes_expired_keys():
    clock = FakeClock()
    backend = MemoryCacheBackend(clock=clock)
    cache = CacheService(backend, clock=clock)

    async def scenario():
        for index in range(1000):
            await cache.get_or_compute("otakudesu", "search", {"query": f"q{index}"}, Counter({"v": index}), 60)
        clock.now += 10_000
        await cache.get_or_compute("otakudesu", "search", {"query": "fresh"}, Counter({"v": "fresh"}), 60)
        return await backend.get(make_cache_key("otakudesu", "search", {"query": "q1"}))

    stale = asyncio.run(scenario())

    assert stale is None
    assert len(backend) == 1


def test_memory_backend_get_drops_an_expired_key():
    clock = FakeClock()
    backend = MemoryCacheBackend(clock=clock)

    async def scenario():
        await backend.set("k", "v", 60)
        before = await backend.get("k")
        clock.now += 60
        return before, await backend.get("k")

    assert asyncio.run(scenario()) == ("v", None)
    assert len(backend) == 0


def test_concurrent_misses_share_one_compute():
    cache = CacheService(MemoryCacheBackend())
    calls = []

    async def slow_compute():
        calls.append(1)
        await asyncio.sleep(0.01)
        return {"v": 1}

    async def scenario():
        return await asyncio.gather(
            *(cache.get_or_compute("lk21", "list_latest", {"page": 1}, slow_compute, 300) for _ in range(5))
        )

    results = asyncio.run(scenario())

    assert results == [{"v": 1}] * 5
    assert len(calls) == 1


def test_concurrent_waiters_all_see_the_compute_error():
    cache = CacheService(MemoryCacheBackend())

    async def failing():
        await asyncio.sleep(0.01)
        raise NetworkError("down")

    async def scenario():
        return await asyncio.gather(
            *(cache.get_or_compute("lk21", "get_detail", {"slug": "x"}, failing, 300) for _ in range(3)),
            return_exceptions=True,
        )

    results = asyncio.run(scenario())

    assert all(isinstance(result, NetworkError) for result in results)


def test_undecodable_entry_is_treated_as_a_miss(caplog):
    cache = CacheService(MemoryCacheBackend())
    compute = Counter(_page())

    async def scenario():
        await cache.get_or_compute("otakudesu", "list_latest", {"page": 1}, Counter(["old", "shape"]), 300)
        return await cache.get_or_compute("otakudesu", "list_latest", {"page": 1}, compute, 300, **_listing_codec())

    page = asyncio.run(scenario())

    assert compute.calls == 1
    assert page.data[0].slug == "a"
    assert "Discarding undecodable cache entry" in caplog.text
