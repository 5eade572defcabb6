"""Cache port used by the creation, resolution and analytics services."""

from abc import ABC, abstractmethod
from typing import Any, Optional


class CacheBackend(ABC):
    """Key-value cache with per-key expiry.

    Implementations must fail open: when the backing store is unreachable
    reads return None, writes return False, and the underlying error is
    kept on ``last_error`` instead of being raised.
    """

    last_error: Optional[Exception] = None

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    async def increment(self, key: str, amount: int = 1) -> Optional[int]:
        pass

    @abstractmethod
    async def ttl(self, key: str) -> Optional[int]:
        """Seconds left before the key expires, -1 without expiry, None when missing."""

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern and return how many went."""
