"""Tests for caching functionality."""

import pytest
import redis.asyncio as redis

from stockbook.config import settings
from stockbook.utils import cache
from stockbook.utils.cache import cache_key, cached, get_redis, invalidate_cache


class TestCacheKey:

    def test_same_kwargs_same_key(self):
        assert cache_key(limit=50, offset=0) == cache_key(offset=0, limit=50)

    def test_different_kwargs_different_key(self):
        assert cache_key(limit=50, offset=0) != cache_key(limit=100, offset=0)

    def test_no_kwargs(self):
        assert cache_key() == "default"


@pytest.mark.cache
@pytest.mark.asyncio
class TestCacheWithRedis:

    async def test_get_redis(self, redis_client):
        client = await get_redis()
        assert await client.ping() is True

    async def test_cached_decorator(self, redis_client):
        call_count = 0

        @cached(ttl=10, prefix="test")
        async def expensive_function(*, a: int, b: str):
            nonlocal call_count
            call_count += 1
            return {"result": a + len(b)}

        assert await expensive_function(a=10, b="hello") == {"result": 15}
        assert call_count == 1

        # Served from Redis
        assert await expensive_function(a=10, b="hello") == {"result": 15}
        assert call_count == 1

        assert await expensive_function(a=20, b="world") == {"result": 25}
        assert call_count == 2


@pytest.mark.cache
@pytest.mark.asyncio
class TestCacheFallback:

    async def test_disabled_cache_bypasses_redis(self, monkeypatch):
        async def no_redis():
            raise AssertionError("Redis must not be touched")

        monkeypatch.setattr(settings, "cache_enabled", False)
        monkeypatch.setattr(cache, "get_redis", no_redis)
        calls = 0

        @cached(ttl=10, prefix="off")
        async def compute(*, x: int):
            nonlocal calls
            calls += 1
            return x * 2

        assert await compute(x=2) == 4
        assert await compute(x=2) == 4
        assert calls == 2
        await invalidate_cache("off:*")

    async def test_unreachable_redis_falls_through(self, monkeypatch):
        async def broken_redis():
            raise redis.ConnectionError("connection refused")

        monkeypatch.setattr(settings, "cache_enabled", True)
        monkeypatch.setattr(cache, "get_redis", broken_redis)
        calls = 0

        @cached(ttl=10, prefix="down")
        async def compute(*, x: int):
            nonlocal calls
            calls += 1
            return {"x": x}

        assert await compute(x=1) == {"x": 1}
        assert await compute(x=1) == {"x": 1}
        assert calls == 2

        # Invalidation logs and carries on
        await invalidate_cache("down:*")
