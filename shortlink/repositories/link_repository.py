"""Link Repository for the short-link engine.

This module provides the LinkRepository class for database operations related to Link models.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import desc
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.models.link import Link, LinkCreate, LinkUpdate, utcnow
from shortlink.repositories.base import BaseRepository


class LinkRepository(BaseRepository[Link, LinkCreate, LinkUpdate]):
    """
    Repository for Link model database operations.

    Provides lookups by each unique column, existence checks used by code
    generation and alias validation, and the counter bump performed when
    a click is recorded.
    """

    unique_fields = ("original_url", "custom_alias", "code")

    def __init__(self):
        super().__init__(Link)

    async def get_by_code(self, db: AsyncSession, code: str) -> Optional[Link]:
        """
        Find a link by its short code.

        Args:
            db: Database session
            code: The short code to look up

        Returns:
            The Link if found, None otherwise

        Raises:
            RepositoryError: On database errors
        """
        return await self.get_one_by(db, code=code)

    async def get_by_original_url(self, db: AsyncSession, original_url: str) -> Optional[Link]:
        """Find the link that shortens an already normalized URL."""
        return await self.get_one_by(db, original_url=original_url)

    async def get_by_alias(self, db: AsyncSession, alias: str) -> Optional[Link]:
        return await self.get_one_by(db, custom_alias=alias)

    async def code_exists(self, db: AsyncSession, code: str) -> bool:
        return await self.exists(db, code=code)

    async def alias_exists(self, db: AsyncSession, alias: str) -> bool:
        """
        Check whether an alias is already taken.

        Aliases share the code namespace, so a generated code equal to the
        alias counts as taken too.
        """
        return await self.exists(db, code=alias) or await self.exists(db, custom_alias=alias)

    async def create_link(self, db: AsyncSession, data: Union[LinkCreate, Dict[str, Any]]) -> Link:
        """
        Persist a new link.

        Uniqueness is left to the table constraints; a violation surfaces as
        DuplicateEntityError naming the conflicting column.
        """
        return await self.create(db, data)

    async def update_by_code(
        self,
        db: AsyncSession,
        code: str,
        data: Union[LinkUpdate, Dict[str, Any]]
    ) -> Optional[Link]:
        """
        Apply a patch to the link with the given code.

        Returns:
            The updated Link, or None when no link has that code
        """
        link = await self.get_by_code(db, code)
        if link is None:
            return None
        return await self.update_entity(db, link, data)

    async def delete_by_code(self, db: AsyncSession, code: str) -> bool:
        return await self.bulk_delete(db, code=code) > 0

    async def record_access(self, db: AsyncSession, code: str, accessed_at: Optional[datetime] = None) -> int:
        """
        Increment the click count and stamp the last access time.

        Uses a direct UPDATE so concurrent clicks never lose increments.

        Returns:
            Number of links updated (0 when the link was deleted meanwhile)
        """
        return await self.bulk_update(
            db,
            {"code": code},
            {"click_count": Link.click_count + 1, "last_accessed_at": accessed_at or utcnow()},
        )

    def _listing_conditions(self, is_active: Optional[bool], owner_id: Optional[str]) -> List[Any]:
        conditions = []
        if is_active is not None:
            conditions.append(Link.is_active == is_active)
        if owner_id is not None:
            conditions.append(Link.owner_id == owner_id)
        return conditions

    async def list_links(
        self,
        db: AsyncSession,
        skip: int = 0,
        limit: int = 10,
        is_active: Optional[bool] = None,
        owner_id: Optional[str] = None,
    ) -> List[Link]:
        """
        Get a page of links, newest first.

        Args:
            db: Database session
            skip: Number of links to skip
            limit: Maximum number of links to return
            is_active: Only links with this active flag, when given
            owner_id: Only links owned by this owner, when given

        Raises:
            RepositoryError: On database errors
        """
        return await self.get_many(
            db,
            *self._listing_conditions(is_active, owner_id),
            order_by=(desc(Link.created_at), desc(Link.id)),
            skip=skip,
            limit=limit,
        )

    async def count_links(
        self,
        db: AsyncSession,
        is_active: Optional[bool] = None,
        owner_id: Optional[str] = None,
    ) -> int:
        return await self.count(db, *self._listing_conditions(is_active, owner_id))

    async def get_top_links(self, db: AsyncSession, limit: int = 5) -> List[Link]:
        """Get the most clicked links, ties going to the newer link."""
        return await self.get_many(
            db,
            order_by=(desc(Link.click_count), desc(Link.id)),
            limit=limit,
        )
