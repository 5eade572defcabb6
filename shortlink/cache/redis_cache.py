"""Redis implementation of the cache port."""

import json
from typing import Any, Optional

from loguru import logger
from redis.exceptions import RedisError

from shortlink.cache.base import CacheBackend

# Failures the adapter absorbs; anything else is a programming error
CACHE_ERRORS = (RedisError, ConnectionError, OSError, TimeoutError)


class RedisCache(CacheBackend):
    """
    Fail-open cache over a ``redis.asyncio`` client.

    Values are stored JSON-encoded. The client must be created with
    ``decode_responses=True``, as RedisClientManager does.
    """

    def __init__(self, client: Any, namespace: str = ""):
        self.client = client
        self.namespace = namespace
        self.last_error: Optional[Exception] = None

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    def _failed(self, operation: str, key: str, error: Exception) -> None:
        self.last_error = error
        logger.warning(f"Cache {operation} failed for {key}: {error}")

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.client.get(self._key(key))
        except CACHE_ERRORS as e:
            self._failed("get", key, e)
            return None

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            # Written by something other than this adapter
            return raw

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            self._failed("encode", key, e)
            return False

        try:
            if ttl is not None and ttl > 0:
                result = await self.client.set(self._key(key), payload, ex=int(ttl))
            else:
                result = await self.client.set(self._key(key), payload)
            return bool(result)
        except CACHE_ERRORS as e:
            self._failed("set", key, e)
            return False

    async def delete(self, key: str) -> bool:
        try:
            return await self.client.delete(self._key(key)) > 0
        except CACHE_ERRORS as e:
            self._failed("delete", key, e)
            return False

    async def exists(self, key: str) -> bool:
        try:
            return await self.client.exists(self._key(key)) > 0
        except CACHE_ERRORS as e:
            self._failed("exists", key, e)
            return False

    async def increment(self, key: str, amount: int = 1) -> Optional[int]:
        try:
            return int(await self.client.incrby(self._key(key), amount))
        except CACHE_ERRORS as e:
            self._failed("increment", key, e)
            return None

    async def ttl(self, key: str) -> Optional[int]:
        try:
            remaining = await self.client.ttl(self._key(key))
        except CACHE_ERRORS as e:
            self._failed("ttl", key, e)
            return None
        # -2: no such key, -1: no expiry
        if remaining is None or remaining == -2:
            return None
        return int(remaining)

    async def delete_pattern(self, pattern: str) -> int:
        deleted = 0
        try:
            async for key in self.client.scan_iter(match=self._key(pattern)):
                deleted += await self.client.delete(key)
        except CACHE_ERRORS as e:
            self._failed("delete_pattern", pattern, e)
        return deleted
