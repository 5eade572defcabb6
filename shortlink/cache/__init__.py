"""Cache port, its Redis adapter and the key formats."""

from shortlink.cache.base import CacheBackend
from shortlink.cache.redis_cache import RedisCache
from shortlink.cache import keys

__all__ = ["CacheBackend", "RedisCache", "keys"]
