"""Link creation service for the short-link engine.

This module contains the LinkCreationService class which turns a submitted URL
into a persisted Link, deduplicating by normalized URL and writing the
resolution entry through to the cache.
"""

import logging
from datetime import datetime
from typing import Optional

from shortlink.cache.base import CacheBackend
from shortlink.core.config import settings
from shortlink.models.link import Link, LinkCreate, to_naive_utc, utcnow
from shortlink.repositories.base import DuplicateEntityError, RepositoryError
from shortlink.repositories.store import RecordStore
from shortlink.services.aliases import validate_alias
from shortlink.services.codegen import CodeGenerator
from shortlink.services.exceptions import (
    AliasTakenError,
    CreationConflictError,
    ExpirationInPastError,
    LinkStoreError,
)
from shortlink.services.normalizer import normalize_url
from shortlink.services.resolver import cache_resolution

logger = logging.getLogger(__name__)


class LinkCreationService:
    """
    Service for link creation business logic.

    Creation is idempotent per normalized URL. Uniqueness of codes, aliases
    and URLs is enforced by the record store; conflicts lost to a concurrent
    creator are retried or resolved here.
    """

    def __init__(
        self,
        store: RecordStore,
        cache: CacheBackend,
        code_generator: Optional[CodeGenerator] = None,
        cache_ttl: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ):
        """
        Initialize the link creation service.

        Args:
            store: Record store holding links
            cache: Cache receiving the write-through resolution entry
            code_generator: Generator for system codes (built from settings if omitted)
            cache_ttl: Resolution cache TTL in seconds
            max_attempts: Persist attempts allowed after code/alias conflicts
        """
        self.store = store
        self.cache = cache
        self.code_generator = code_generator or CodeGenerator(store.code_exists)
        self.cache_ttl = cache_ttl or settings.RESOLUTION_CACHE_TTL
        self.max_attempts = max_attempts or settings.CREATION_MAX_ATTEMPTS

    async def create_link(
        self,
        original_url: str,
        custom_alias: Optional[str] = None,
        owner_id: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> Link:
        """
        Create a link, or return the existing one for the same URL.

        Args:
            original_url: The URL to shorten
            custom_alias: Optional alias to use as the code
            owner_id: Optional owner; None for anonymous links
            expires_at: Optional expiry, must be in the future

        Returns:
            Link: The created link, or the existing link for this URL

        Raises:
            InvalidUrlError: If the URL is not an absolute http(s) URL
            InvalidAliasFormatError: If the alias format is invalid
            AliasTakenError: If the alias is already in use
            ExpirationInPastError: If expires_at is not after now
            CreationConflictError: If a code conflict survives the retry
            LinkStoreError: If the record store fails
        """
        normalized = normalize_url(original_url)

        existing = await self._find_by_url(normalized)
        if existing is not None:
            logger.debug(f"Returning existing link {existing.code} for {normalized}")
            return existing

        if custom_alias is not None:
            validate_alias(custom_alias)

        for attempt in range(1, self.max_attempts + 1):
            code = await self._choose_code(custom_alias)

            expiry = to_naive_utc(expires_at)
            if expiry is not None and expiry <= utcnow():
                raise ExpirationInPastError("Expiration date must be in the future")

            data = LinkCreate(
                original_url=normalized,
                code=code,
                custom_alias=custom_alias,
                owner_id=owner_id,
                expires_at=expiry,
            )

            try:
                link = await self.store.create(data)
            except DuplicateEntityError as e:
                if e.field_name == "original_url":
                    return await self._winner_for(normalized)
                logger.warning(
                    f"Code conflict on {e.field_name}={e.value} "
                    f"(attempt {attempt}/{self.max_attempts})"
                )
                continue
            except RepositoryError as e:
                logger.error(f"Error creating link: {e}")
                raise LinkStoreError(f"Failed to create link: {e}") from e

            await cache_resolution(self.cache, link, self.cache_ttl)
            logger.info(f"Created link {link.code}")
            return link

        raise CreationConflictError(
            f"Could not persist a unique code after {self.max_attempts} attempts"
        )

    async def _find_by_url(self, normalized: str) -> Optional[Link]:
        try:
            return await self.store.find_by_original_url(normalized)
        except RepositoryError as e:
            logger.error(f"Error looking up link by URL: {e}")
            raise LinkStoreError(f"Failed to look up existing link: {e}") from e

    async def _choose_code(self, custom_alias: Optional[str]) -> str:
        try:
            if custom_alias is not None:
                if await self.store.alias_exists(custom_alias):
                    raise AliasTakenError(f"Alias '{custom_alias}' is already in use")
                return custom_alias
            return await self.code_generator.next()
        except RepositoryError as e:
            logger.error(f"Error checking code availability: {e}")
            raise LinkStoreError(f"Failed to check code availability: {e}") from e

    async def _winner_for(self, normalized: str) -> Link:
        """Return the link created by a concurrent caller for the same URL."""
        winner = await self._find_by_url(normalized)
        if winner is None:
            raise CreationConflictError(f"Link for {normalized} conflicted but could not be found")
        logger.info(f"Lost creation race for {normalized}, returning {winner.code}")
        return winner
