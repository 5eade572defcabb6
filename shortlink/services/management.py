"""Link management: listing, updates, activation toggles and deletion.

Every mutation evicts the link's resolution entry and memoized analytics so
readers fall back to the record store on their next request.
"""

import asyncio
import logging
import math
from typing import Any, Dict, Optional, Union

from shortlink.cache.base import CacheBackend
from shortlink.cache.keys import analytics_pattern, resolution_key
from shortlink.core.config import settings
from shortlink.models.link import Link, LinkPage, LinkRead, LinkUpdate, utcnow
from shortlink.repositories.base import RepositoryError
from shortlink.repositories.store import RecordStore
from shortlink.services.aliases import is_valid_alias
from shortlink.services.exceptions import (
    ExpirationInPastError,
    InvalidListingError,
    LinkNotFoundError,
    LinkStoreError,
    LinkUpdateError,
)

logger = logging.getLogger(__name__)


class LinkManagementService:
    """Service for listing, changing and removing existing links."""

    def __init__(
        self,
        store: RecordStore,
        cache: CacheBackend,
        default_limit: Optional[int] = None,
        max_limit: Optional[int] = None,
    ):
        self.store = store
        self.cache = cache
        self.default_limit = default_limit or settings.LIST_DEFAULT_LIMIT
        self.max_limit = max_limit or settings.LIST_MAX_LIMIT

    async def invalidate(self, code: str) -> None:
        """Evict every cache entry derived from a link."""
        await self.cache.delete(resolution_key(code))
        await self.cache.delete_pattern(analytics_pattern(code))

    async def get_link(self, code: str) -> Link:
        """
        Get a link by code regardless of its state.

        Raises:
            LinkNotFoundError: If no link has this code
            LinkStoreError: If the record store fails
        """
        try:
            link = await self.store.find_by_code(code)
        except RepositoryError as e:
            logger.error(f"Error retrieving link {code}: {e}")
            raise LinkStoreError(f"Failed to retrieve link with code '{code}'") from e
        if link is None:
            raise LinkNotFoundError(f"Link with code '{code}' not found")
        return link

    async def update_link(self, code: str, patch: Union[LinkUpdate, Dict[str, Any]]) -> Link:
        """
        Change a link's active flag or expiry.

        Args:
            code: Short code of the link
            patch: Fields to change; unset fields are left alone

        Returns:
            Link: The updated link

        Raises:
            ExpirationInPastError: If a new expiry is not in the future
            LinkNotFoundError: If no link has this code
            LinkUpdateError: If the record store fails
        """
        if isinstance(patch, dict):
            patch = LinkUpdate.model_validate(patch)

        if patch.expires_at is not None and patch.expires_at <= utcnow():
            raise ExpirationInPastError("Expiration date must be in the future")

        changes = patch.model_dump(exclude_unset=True)
        try:
            link = await self.store.update(code, changes)
        except RepositoryError as e:
            logger.error(f"Error updating link {code}: {e}")
            raise LinkUpdateError(f"Failed to update link with code '{code}'") from e

        if link is None:
            raise LinkNotFoundError(f"Link with code '{code}' not found")

        await self.invalidate(code)
        logger.info(f"Updated link {code}: {sorted(changes)}")
        return link

    async def deactivate_link(self, code: str) -> Link:
        return await self.update_link(code, {"is_active": False})

    async def activate_link(self, code: str) -> Link:
        return await self.update_link(code, {"is_active": True})

    async def delete_link(self, code: str, cascade_clicks: bool = True) -> None:
        """
        Delete a link and, by default, its click history.

        Raises:
            LinkNotFoundError: If no link has this code
            LinkUpdateError: If the record store fails
        """
        try:
            deleted = await self.store.delete(code, cascade_clicks=cascade_clicks)
        except RepositoryError as e:
            logger.error(f"Error deleting link {code}: {e}")
            raise LinkUpdateError(f"Failed to delete link with code '{code}'") from e

        if not deleted:
            raise LinkNotFoundError(f"Link with code '{code}' not found")

        await self.invalidate(code)
        logger.info(f"Deleted link {code}")

    async def is_alias_available(self, alias: str) -> bool:
        """
        Check whether an alias could be used for a new link.

        Malformed aliases are reported as unavailable.
        """
        if not is_valid_alias(alias):
            return False
        try:
            return not await self.store.alias_exists(alias)
        except RepositoryError as e:
            logger.error(f"Error checking alias {alias}: {e}")
            raise LinkStoreError(f"Failed to check alias '{alias}'") from e

    async def list_links(self, page: int = 1, limit: Optional[int] = None, is_active: Optional[bool] = None) -> LinkPage:
        """
        List every link, newest first.

        Args:
            page: 1-based page number
            limit: Links per page, up to max_limit
            is_active: Only active (True) or inactive (False) links, when given

        Raises:
            InvalidListingError: If page or limit is out of range
            LinkStoreError: If the record store fails
        """
        return await self._page(page, limit, is_active=is_active)

    async def list_links_by_owner(self, owner_id: str, page: int = 1, limit: Optional[int] = None) -> LinkPage:
        """List the links created for one owner, newest first."""
        if not owner_id:
            raise InvalidListingError("owner_id must not be empty")
        return await self._page(page, limit, owner_id=owner_id)

    async def _page(self, page: int, limit: Optional[int], **filters) -> LinkPage:
        limit = self.default_limit if limit is None else limit
        if page < 1:
            raise InvalidListingError(f"Page must be at least 1, got {page}")
        if not 1 <= limit <= self.max_limit:
            raise InvalidListingError(f"Limit must be between 1 and {self.max_limit}, got {limit}")

        try:
            links, total = await asyncio.gather(
                self.store.list_links(skip=(page - 1) * limit, limit=limit, **filters),
                self.store.count_links(**filters),
            )
        except RepositoryError as e:
            logger.error(f"Error listing links {filters}: {e}")
            raise LinkStoreError("Failed to list links") from e

        return LinkPage(
            links=[LinkRead(**link.model_dump()) for link in links],
            total_count=total,
            page=page,
            total_pages=math.ceil(total / limit),
        )
