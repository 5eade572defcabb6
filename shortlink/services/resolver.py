"""Resolution service: cache-aside lookup of short codes."""

import logging
from typing import Optional

from shortlink.cache.base import CacheBackend
from shortlink.cache.keys import resolution_key
from shortlink.core.config import settings
from shortlink.models.link import Link, utcnow
from shortlink.repositories.base import RepositoryError
from shortlink.repositories.store import RecordStore
from shortlink.services.clicks import ClickRecorder, RequestMetadata
from shortlink.services.exceptions import (
    LinkDeactivatedError,
    LinkExpiredError,
    LinkNotFoundError,
    LinkStoreError,
)

logger = logging.getLogger(__name__)


def resolution_ttl(link: Link, default_ttl: int) -> int:
    """Cache lifetime for a link's resolution entry, never outliving the link."""
    remaining = link.seconds_until_expiry(utcnow())
    if remaining is None:
        return default_ttl
    return min(default_ttl, remaining)


async def cache_resolution(cache: CacheBackend, link: Link, default_ttl: int) -> bool:
    """Write ``resolution:<code>``; failures are logged by the cache and ignored."""
    ttl = resolution_ttl(link, default_ttl)
    if ttl <= 0:
        return False
    stored = await cache.set(resolution_key(link.code), link.original_url, ttl)
    if not stored:
        logger.warning(f"Could not cache resolution for {link.code}")
    return stored


class ResolutionService:
    """
    Resolves codes to destination URLs.

    Reads go to the cache first and fall back to the record store. A cache
    hit is trusted without re-checking the link's state; deactivation and
    expiry take effect there once the entry is evicted or times out.
    """

    def __init__(
        self,
        store: RecordStore,
        cache: CacheBackend,
        recorder: Optional[ClickRecorder] = None,
        cache_ttl: Optional[int] = None,
    ):
        self.store = store
        self.cache = cache
        self.recorder = recorder
        self.cache_ttl = cache_ttl or settings.RESOLUTION_CACHE_TTL

    async def resolve(self, code: str, metadata: Optional[RequestMetadata] = None) -> str:
        """
        Resolve a code to its original URL.

        Args:
            code: The short code to look up
            metadata: Request details; when given a click is queued for recording

        Returns:
            str: The destination URL

        Raises:
            LinkNotFoundError: If no link has this code
            LinkDeactivatedError: If the link is inactive
            LinkExpiredError: If the link's expiry has passed
            LinkStoreError: If the record store fails on a cache miss
        """
        original_url = await self.cache.get(resolution_key(code))

        if original_url is None:
            original_url = await self._resolve_from_store(code)
        else:
            logger.debug(f"Resolution cache hit for {code}")

        if metadata is not None:
            self._record_click(code, metadata)

        return original_url

    async def _resolve_from_store(self, code: str) -> str:
        try:
            link = await self.store.find_by_code(code)
        except RepositoryError as e:
            logger.error(f"Error retrieving link {code}: {e}")
            raise LinkStoreError(f"Failed to retrieve link with code '{code}'") from e

        if link is None:
            raise LinkNotFoundError(f"Link with code '{code}' not found")
        if not link.is_active:
            raise LinkDeactivatedError(f"Link with code '{code}' has been deactivated")
        if link.is_expired(utcnow()):
            raise LinkExpiredError(f"Link with code '{code}' has expired")

        await cache_resolution(self.cache, link, self.cache_ttl)
        return link.original_url

    def _record_click(self, code: str, metadata: RequestMetadata) -> None:
        if self.recorder is None:
            return
        try:
            self.recorder.submit(code, metadata)
        except Exception as e:
            # The redirect must never fail because of analytics
            logger.error(f"Failed to queue click for {code}: {e}")
