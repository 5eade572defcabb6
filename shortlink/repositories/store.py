"""Record store port and its SQL adapter.

Services depend on RecordStore only. SQLRecordStore implements it on top of the
Link and Click repositories, running every operation in its own session and
transaction so independent calls can be awaited concurrently.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

from shortlink.db.session import SessionManager
from shortlink.models.click import (
    ClickDimension,
    ClickEvent,
    ClickEventCreate,
    ClickEventFilter,
)
from shortlink.models.link import Link, LinkCreate, LinkUpdate
from shortlink.repositories.click_repository import ClickRepository
from shortlink.repositories.link_repository import LinkRepository


class RecordStore(ABC):
    """Durable storage for links and click events.

    Uniqueness conflicts raise DuplicateEntityError; every other failure
    raises RepositoryError. Implementations never return partial data to
    hide an outage.
    """

    @abstractmethod
    async def find_by_code(self, code: str) -> Optional[Link]:
        pass

    @abstractmethod
    async def find_by_original_url(self, original_url: str) -> Optional[Link]:
        pass

    @abstractmethod
    async def find_by_alias(self, alias: str) -> Optional[Link]:
        pass

    @abstractmethod
    async def create(self, link: Union[LinkCreate, Dict[str, Any]]) -> Link:
        pass

    @abstractmethod
    async def update(self, code: str, patch: Union[LinkUpdate, Dict[str, Any]]) -> Optional[Link]:
        pass

    @abstractmethod
    async def delete(self, code: str, cascade_clicks: bool = True) -> bool:
        pass

    @abstractmethod
    async def code_exists(self, code: str) -> bool:
        pass

    @abstractmethod
    async def alias_exists(self, alias: str) -> bool:
        pass

    @abstractmethod
    async def list_links(
        self,
        skip: int = 0,
        limit: int = 10,
        is_active: Optional[bool] = None,
        owner_id: Optional[str] = None,
    ) -> List[Link]:
        """Links newest first, optionally filtered by active flag and owner."""

    @abstractmethod
    async def count_links(self, is_active: Optional[bool] = None, owner_id: Optional[str] = None) -> int:
        pass

    @abstractmethod
    async def top_links(self, limit: int = 5) -> List[Link]:
        """Links with the highest click counts."""

    @abstractmethod
    async def count_recent_click_events(self, since: datetime) -> int:
        """Clicks on any link at or after ``since``."""

    @abstractmethod
    async def list_click_events(self, code: str, window: Optional[ClickEventFilter] = None) -> List[ClickEvent]:
        pass

    @abstractmethod
    async def append_click_event(self, event: Union[ClickEventCreate, Dict[str, Any]]) -> ClickEvent:
        """Store an event and bump the link's denormalized counters."""

    @abstractmethod
    async def count_click_events(self, code: str, window: Optional[ClickEventFilter] = None) -> int:
        pass

    @abstractmethod
    async def count_click_events_by(
        self,
        code: str,
        dimension: ClickDimension,
        window: Optional[ClickEventFilter] = None,
    ) -> List[Tuple[Optional[str], int]]:
        pass

    @abstractmethod
    async def list_click_timestamps(self, code: str, window: Optional[ClickEventFilter] = None) -> List[datetime]:
        pass


class SQLRecordStore(RecordStore):
    """RecordStore backed by SQLModel tables through async SQLAlchemy sessions."""

    def __init__(
        self,
        sessions: SessionManager,
        links: Optional[LinkRepository] = None,
        clicks: Optional[ClickRepository] = None,
    ):
        self.sessions = sessions
        self.links = links or LinkRepository()
        self.clicks = clicks or ClickRepository()

    async def find_by_code(self, code: str) -> Optional[Link]:
        async with self.sessions.transaction_context() as db:
            return await self.links.get_by_code(db, code)

    async def find_by_original_url(self, original_url: str) -> Optional[Link]:
        async with self.sessions.transaction_context() as db:
            return await self.links.get_by_original_url(db, original_url)

    async def find_by_alias(self, alias: str) -> Optional[Link]:
        async with self.sessions.transaction_context() as db:
            return await self.links.get_by_alias(db, alias)

    async def create(self, link: Union[LinkCreate, Dict[str, Any]]) -> Link:
        async with self.sessions.transaction_context() as db:
            return await self.links.create_link(db, link)

    async def update(self, code: str, patch: Union[LinkUpdate, Dict[str, Any]]) -> Optional[Link]:
        async with self.sessions.transaction_context() as db:
            return await self.links.update_by_code(db, code, patch)

    async def delete(self, code: str, cascade_clicks: bool = True) -> bool:
        async with self.sessions.transaction_context() as db:
            deleted = await self.links.delete_by_code(db, code)
            if deleted and cascade_clicks:
                await self.clicks.delete_for_code(db, code)
            return deleted

    async def code_exists(self, code: str) -> bool:
        async with self.sessions.transaction_context() as db:
            return await self.links.code_exists(db, code)

    async def alias_exists(self, alias: str) -> bool:
        async with self.sessions.transaction_context() as db:
            return await self.links.alias_exists(db, alias)

    async def list_click_events(self, code: str, window: Optional[ClickEventFilter] = None) -> List[ClickEvent]:
        async with self.sessions.transaction_context() as db:
            return await self.clicks.list_for_code(db, code, window)

    async def append_click_event(self, event: Union[ClickEventCreate, Dict[str, Any]]) -> ClickEvent:
        async with self.sessions.transaction_context() as db:
            stored = await self.clicks.create_click_event(db, event)
            await self.links.record_access(db, stored.code, stored.occurred_at)
            return stored

    async def count_click_events(self, code: str, window: Optional[ClickEventFilter] = None) -> int:
        async with self.sessions.transaction_context() as db:
            return await self.clicks.count_for_code(db, code, window)

    async def count_click_events_by(
        self,
        code: str,
        dimension: ClickDimension,
        window: Optional[ClickEventFilter] = None,
    ) -> List[Tuple[Optional[str], int]]:
        async with self.sessions.transaction_context() as db:
            return await self.clicks.count_by_dimension(db, code, dimension, window)

    async def list_click_timestamps(self, code: str, window: Optional[ClickEventFilter] = None) -> List[datetime]:
        async with self.sessions.transaction_context() as db:
            return await self.clicks.list_timestamps(db, code, window)

    async def list_links(
        self,
        skip: int = 0,
        limit: int = 10,
        is_active: Optional[bool] = None,
        owner_id: Optional[str] = None,
    ) -> List[Link]:
        async with self.sessions.transaction_context() as db:
            return await self.links.list_links(db, skip=skip, limit=limit, is_active=is_active, owner_id=owner_id)

    async def count_links(self, is_active: Optional[bool] = None, owner_id: Optional[str] = None) -> int:
        async with self.sessions.transaction_context() as db:
            return await self.links.count_links(db, is_active=is_active, owner_id=owner_id)

    async def top_links(self, limit: int = 5) -> List[Link]:
        async with self.sessions.transaction_context() as db:
            return await self.links.get_top_links(db, limit=limit)

    async def count_recent_click_events(self, since: datetime) -> int:
        async with self.sessions.transaction_context() as db:
            return await self.clicks.count_since(db, since)
