"""Tests for the Redis cache store."""

import asyncio

import pytest

from .cache import RedisCache


class FakeRedis:
    def __init__(self):
        self.data: dict[str, str] = {}
        self.expiry: dict[str, int] = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        self.expiry[key] = ex
        return True


class DownRedis:
    async def get(self, key):
        raise ConnectionError("redis down")

    async def set(self, key, value, ex=None):
        raise ConnectionError("redis down")


class SlowRedis:
    async def get(self, key):
        await asyncio.sleep(5)

    async def set(self, key, value, ex=None):
        await asyncio.sleep(5)


class TestRedisCache:
    @pytest.mark.asyncio
    async def test_json_round_trip_with_ttl(self):
        redis = FakeRedis()
        cache = RedisCache(redis)
        await cache.set("k", {"a": [1, 2]}, 300)
        assert redis.expiry["k"] == 300
        assert await cache.get("k") == {"a": [1, 2]}

    @pytest.mark.asyncio
    async def test_miss(self):
        assert await RedisCache(FakeRedis()).get("absent") is None

    @pytest.mark.asyncio
    async def test_errors_are_misses(self):
        cache = RedisCache(DownRedis())
        assert await cache.get("k") is None
        await cache.set("k", [1], 10)

    @pytest.mark.asyncio
    async def test_timeouts_are_misses(self):
        cache = RedisCache(SlowRedis(), timeout_seconds=0.05)
        assert await cache.get("k") is None
        await cache.set("k", [1], 10)

    @pytest.mark.asyncio
    async def test_undecodable_entry_is_a_miss(self):
        redis = FakeRedis()
        redis.data["k"] = "{not json"
        assert await RedisCache(redis).get("k") is None
