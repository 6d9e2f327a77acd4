"""
Unit Tests - Response Cache
"""
import fnmatch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.serving import cache
from src.serving.cache import CacheManager, invalidate_order_views


class FakeRedis:
    """Dictionary-backed stand-in for the few client calls the cache makes"""

    def __init__(self, fail: bool = False):
        self.data = {}
        self.ttls = {}
        self.fail = fail

    def _check(self):
        if self.fail:
            raise RedisConnectionError("connection refused")

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self._check()
        self.data[key] = value
        self.ttls[key] = ttl

    async def scan_iter(self, match):
        self._check()
        for key in list(self.data):
            if fnmatch.fnmatch(key, match):
                yield key

    async def delete(self, *keys):
        self._check()
        return sum(1 for key in keys if self.data.pop(key, None) is not None)


@pytest.fixture
def fake_redis(monkeypatch):
    client = FakeRedis()
    monkeypatch.setattr(cache, "_client", client)
    return client


class TestCacheManager:
    """Tests for namespaced read-through caching"""

    async def test_disabled_cache_always_computes(self):
        calls = []

        async def build():
            calls.append(1)
            return {"revenue": 7.0}

        manager = CacheManager("reports")

        assert await manager.get_or_set("summary", build) == {"revenue": 7.0}
        assert await manager.get_or_set("summary", build) == {"revenue": 7.0}
        assert len(calls) == 2
        assert await manager.invalidate_all() == 0

    async def test_second_read_is_cached(self, fake_redis):
        calls = []

        async def build():
            calls.append(1)
            return [{"name": "Espresso"}]

        manager = CacheManager("products", default_ttl=60)

        await manager.get_or_set("all", build)
        assert await manager.get_or_set("all", build) == [{"name": "Espresso"}]
        assert len(calls) == 1
        assert fake_redis.ttls["coffee:products:all"] == 60

    async def test_invalidate_only_touches_namespace(self, fake_redis):
        reports = CacheManager("reports")
        products = CacheManager("products")
        await reports.set("summary", {"a": 1})
        await reports.set("sales:30", {"b": 2})
        await products.set("all", [])

        assert await reports.invalidate_all() == 2
        assert await reports.get("summary") is None
        assert await products.get("all") == []

    async def test_order_writes_clear_every_view(self, fake_redis):
        await cache.reports_cache.set("summary", {})
        await cache.customers_cache.set("all", [])
        await cache.products_cache.set("all", [])

        await invalidate_order_views()

        assert fake_redis.data == {}

    async def test_redis_errors_degrade_to_miss(self, monkeypatch):
        monkeypatch.setattr(cache, "_client", FakeRedis(fail=True))
        manager = CacheManager("reports")

        async def build():
            return {"ok": True}

        assert await manager.get_or_set("summary", build) == {"ok": True}
        assert await manager.set("summary", {}) is False
        assert await manager.invalidate_all() == 0
