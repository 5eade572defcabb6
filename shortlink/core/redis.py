"""
Redis connection handling.

RedisClientManager owns the connection pool behind the cache adapter. One
manager is created per engine; there is no process-wide client.
"""

import asyncio
import random
from typing import Optional

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import RedisError


class RedisClientManager:
    """Lazily creates a pooled ``redis.asyncio`` client with decoded responses."""

    def __init__(
        self,
        redis_uri: str,
        max_connections: int = 20,
        socket_timeout: Optional[float] = None,
    ):
        self.redis_uri = redis_uri
        self.max_connections = max_connections
        self.socket_timeout = socket_timeout
        self._pool: Optional[redis.ConnectionPool] = None
        self._client: Optional[redis.Redis] = None
        self._is_connected = False

    @property
    def is_connected(self) -> bool:
        """Result of the most recent ping."""
        return self._is_connected

    def get_client(self) -> redis.Redis:
        """
        Return the shared client, creating the pool on first use.

        Creating the pool does not connect; the first command does.

        Raises:
            ConnectionError: If the URI cannot be turned into a pool
        """
        if self._client is not None:
            return self._client

        try:
            self._pool = redis.ConnectionPool.from_url(
                self.redis_uri,
                max_connections=self.max_connections,
                socket_timeout=self.socket_timeout,
                socket_connect_timeout=self.socket_timeout,
                decode_responses=True,
            )
        except (RedisError, ValueError) as e:
            logger.error(f"Invalid Redis configuration {self.redis_uri}: {e}")
            raise ConnectionError(f"Cannot create Redis pool: {e}") from e

        self._client = redis.Redis(connection_pool=self._pool)
        logger.debug(f"Redis pool created for {self.redis_uri}")
        return self._client

    async def ping(self) -> bool:
        """Check the server is reachable; never raises."""
        try:
            self._is_connected = bool(await self.get_client().ping())
        except (RedisError, ConnectionError, OSError) as e:
            logger.warning(f"Redis ping failed: {e}")
            self._is_connected = False
        return self._is_connected

    async def reconnect(self, max_retries: int = 3, delay: float = 1.0) -> bool:
        """
        Drop the pool and ping until the server answers.

        Waits ``delay * 2**attempt`` seconds, with jitter, between attempts.
        """
        await self.close()

        for attempt in range(max_retries):
            if await self.ping():
                logger.info(f"Redis reconnected after {attempt + 1} attempt(s)")
                return True
            await asyncio.sleep(delay * (2 ** attempt) * random.uniform(0.9, 1.1))

        logger.error(f"Redis still unreachable after {max_retries} attempts")
        return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None
        self._is_connected = False
