"""Click Repository for click event tracking.

This module provides the ClickRepository class for database operations related to ClickEvent models.
Events are keyed by short code rather than a foreign key, so history survives link deletion
unless it is removed explicitly.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import select, func, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.models.click import (
    ClickDimension,
    ClickEvent,
    ClickEventCreate,
    ClickEventFilter,
    ClickEventRead,
)
from shortlink.repositories.base import BaseRepository, RepositoryError, logger


class ClickRepository(BaseRepository[ClickEvent, ClickEventCreate, ClickEventRead]):
    """
    Repository for ClickEvent model database operations.

    Provides appends plus the filtered listing, counting and grouping
    queries the analytics aggregator is built on.
    """

    def __init__(self):
        super().__init__(ClickEvent)

    def _conditions(self, code: str, window: Optional[ClickEventFilter]) -> List[Any]:
        conditions = [ClickEvent.code == code]
        if window is not None:
            if window.since is not None:
                conditions.append(ClickEvent.occurred_at >= window.since)
            if window.until is not None:
                conditions.append(ClickEvent.occurred_at <= window.until)
        return conditions

    async def create_click_event(
        self,
        db: AsyncSession,
        data: Union[ClickEventCreate, Dict[str, Any]]
    ) -> ClickEvent:
        """
        Record a new click event.

        Called from the click recorder's workers, never from the redirect path.
        """
        return await self.create(db, data)

    async def list_for_code(
        self,
        db: AsyncSession,
        code: str,
        window: Optional[ClickEventFilter] = None
    ) -> List[ClickEvent]:
        """
        Get click events for a code, newest first.

        Args:
            db: Database session
            code: Short code the events belong to
            window: Optional time bounds and paging

        Returns:
            List of ClickEvent entities

        Raises:
            RepositoryError: On database errors
        """
        try:
            query = (
                select(ClickEvent)
                .where(*self._conditions(code, window))
                .order_by(desc(ClickEvent.occurred_at), desc(ClickEvent.id))
            )
            if window is not None:
                if window.skip:
                    query = query.offset(window.skip)
                if window.limit is not None:
                    query = query.limit(window.limit)

            result = await db.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving clicks for {code}: {e}")
            raise RepositoryError(f"Error retrieving clicks for code {code}: {e}") from e

    async def count_for_code(
        self,
        db: AsyncSession,
        code: str,
        window: Optional[ClickEventFilter] = None
    ) -> int:
        return await self.count(db, *self._conditions(code, window))

    async def count_by_dimension(
        self,
        db: AsyncSession,
        code: str,
        dimension: ClickDimension,
        window: Optional[ClickEventFilter] = None
    ) -> List[Tuple[Optional[str], int]]:
        """
        Get click counts grouped by one derived column.

        Values are returned raw (including None and empty strings); mapping
        them onto display sentinels is left to the caller.

        Returns:
            List of (value, count) tuples ordered by count descending

        Raises:
            RepositoryError: On database errors
        """
        column = getattr(ClickEvent, dimension.value)
        try:
            query = (
                select(column, func.count().label("count"))
                .where(*self._conditions(code, window))
                .group_by(column)
                .order_by(desc("count"))
            )
            result = await db.execute(query)
            return [(row[0], row[1]) for row in result.all()]
        except SQLAlchemyError as e:
            logger.error(f"Error grouping clicks for {code} by {dimension.value}: {e}")
            raise RepositoryError(f"Error retrieving click statistics by {dimension.value}: {e}") from e

    async def list_timestamps(
        self,
        db: AsyncSession,
        code: str,
        window: Optional[ClickEventFilter] = None
    ) -> List[datetime]:
        """Get the occurrence times of a code's clicks in ascending order."""
        try:
            query = (
                select(ClickEvent.occurred_at)
                .where(*self._conditions(code, window))
                .order_by(ClickEvent.occurred_at)
            )
            result = await db.execute(query)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving click times for {code}: {e}")
            raise RepositoryError(f"Error retrieving click timestamps: {e}") from e

    async def delete_for_code(self, db: AsyncSession, code: str) -> int:
        return await self.bulk_delete(db, code=code)

    async def count_since(self, db: AsyncSession, since: datetime) -> int:
        """Count clicks on any code at or after ``since``."""
        return await self.count(db, ClickEvent.occurred_at >= since)
