"""Tests for the Redis cache adapter."""

import pytest

from shortlink.cache import keys
from shortlink.cache.redis_cache import RedisCache


class TestRedisCache:

    @pytest.mark.asyncio
    async def test_set_and_get_json(self, cache, mock_redis):
        assert await cache.set("analytics:abc:browsers:f", [{"browser": "Chrome", "count": 2}], ttl=60) is True

        assert await cache.get("analytics:abc:browsers:f") == [{"browser": "Chrome", "count": 2}]
        assert mock_redis.expiry["analytics:abc:browsers:f"] == 60

    @pytest.mark.asyncio
    async def test_string_values_round_trip(self, cache):
        await cache.set("resolution:abc", "https://example.com")

        assert await cache.get("resolution:abc") == "https://example.com"

    @pytest.mark.asyncio
    async def test_get_foreign_value(self, cache, mock_redis):
        """Values not written as JSON come back raw."""
        mock_redis.data["resolution:raw"] = "https://example.com/raw"

        assert await cache.get("resolution:raw") == "https://example.com/raw"

    @pytest.mark.asyncio
    async def test_missing_key(self, cache):
        assert await cache.get("nope") is None
        assert await cache.exists("nope") is False
        assert await cache.ttl("nope") is None
        assert await cache.delete("nope") is False

    @pytest.mark.asyncio
    async def test_ttl(self, cache):
        await cache.set("with-ttl", 1, ttl=30)
        await cache.set("no-ttl", 1)

        assert await cache.ttl("with-ttl") == 30
        assert await cache.ttl("no-ttl") == -1

    @pytest.mark.asyncio
    async def test_increment(self, cache):
        assert await cache.increment("clicks:abc") == 1
        assert await cache.increment("clicks:abc", 4) == 5

    @pytest.mark.asyncio
    async def test_delete_pattern(self, cache):
        await cache.set(keys.analytics_key("abc", "summary", "f1"), {})
        await cache.set(keys.analytics_key("abc", "os", "f2"), [])
        await cache.set(keys.analytics_key("abcd", "os", "f2"), [])
        await cache.set(keys.resolution_key("abc"), "https://example.com")

        assert await cache.delete_pattern(keys.analytics_pattern("abc")) == 2

        assert await cache.exists(keys.analytics_key("abcd", "os", "f2")) is True
        assert await cache.exists(keys.resolution_key("abc")) is True

    @pytest.mark.asyncio
    async def test_fails_open(self, cache, mock_redis):
        """Every operation absorbs a connection failure."""
        mock_redis.failing = True

        assert await cache.get("k") is None
        assert await cache.set("k", "v", ttl=10) is False
        assert await cache.delete("k") is False
        assert await cache.exists("k") is False
        assert await cache.increment("k") is None
        assert await cache.ttl("k") is None
        assert await cache.delete_pattern("k*") == 0
        assert cache.last_error is not None

    @pytest.mark.asyncio
    async def test_unencodable_value(self, cache):
        assert await cache.set("k", {1, 2}) is False
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_namespace(self, mock_redis):
        namespaced = RedisCache(mock_redis, namespace="test:")
        await namespaced.set("resolution:abc", "https://example.com")

        assert "test:resolution:abc" in mock_redis.data


class TestCacheKeys:

    def test_formats(self):
        assert keys.resolution_key("abc1234") == "resolution:abc1234"
        assert keys.analytics_key("abc1234", "summary", "0f0f") == "analytics:abc1234:summary:0f0f"
        assert keys.analytics_pattern("abc1234") == "analytics:abc1234:*"
        assert keys.location_key("8.8.8.8") == "location:8.8.8.8"
        assert keys.clicks_counter_key("abc1234") == "clicks:abc1234"
