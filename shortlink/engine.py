"""Short-link engine.

This module wires the record store, cache and services together and exposes the
operations collaborators call: link creation, resolution, analytics, link
listings and link management.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Union

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine

from shortlink.cache.base import CacheBackend
from shortlink.cache.redis_cache import RedisCache
from shortlink.core.config import Settings, settings as default_settings
from shortlink.core.logging import setup_logging
from shortlink.core.redis import RedisClientManager
from shortlink.db.base import create_tables, get_engine, get_session_factory
from shortlink.db.session import SessionManager
from shortlink.models.link import Link, LinkPage, LinkUpdate
from shortlink.repositories.store import RecordStore, SQLRecordStore
from shortlink.services.analytics import (
    AnalyticsOptions,
    AnalyticsResult,
    AnalyticsService,
    AnalyticsView,
)
from shortlink.services.clicks import ClickRecorder, ClickTrackingService, RequestMetadata
from shortlink.services.codegen import CodeGenerator
from shortlink.services.geo import GeoResolver, IpInfoGeoResolver, NullGeoResolver
from shortlink.services.management import LinkManagementService
from shortlink.services.resolver import ResolutionService
from shortlink.services.shortener import LinkCreationService


class ShortLinkEngine:
    """
    Facade over the short-link services.

    Construct it directly with a store and cache (as the tests do) or with
    from_settings() for a PostgreSQL/Redis deployment. start() must run
    inside the event loop before resolutions can record clicks.
    """

    def __init__(
        self,
        store: RecordStore,
        cache: CacheBackend,
        settings: Optional[Settings] = None,
        geo: Optional[GeoResolver] = None,
        code_generator: Optional[CodeGenerator] = None,
        db_engine: Optional[AsyncEngine] = None,
        redis_manager: Optional[RedisClientManager] = None,
    ):
        self.settings = settings or default_settings
        self.store = store
        self.cache = cache
        self.geo = geo or NullGeoResolver()
        self._db_engine = db_engine
        self._redis_manager = redis_manager

        self.code_generator = code_generator or CodeGenerator(
            store.code_exists,
            alphabet=self.settings.CODE_ALPHABET,
            length=self.settings.CODE_LENGTH,
            max_length=self.settings.CODE_MAX_LENGTH,
            max_collisions=self.settings.CODE_MAX_COLLISIONS,
        )
        self.creation = LinkCreationService(
            store,
            cache,
            code_generator=self.code_generator,
            cache_ttl=self.settings.RESOLUTION_CACHE_TTL,
            max_attempts=self.settings.CREATION_MAX_ATTEMPTS,
        )
        self.tracking = ClickTrackingService(
            store,
            cache,
            geo=self.geo,
            enabled=self.settings.ANALYTICS_ENABLED,
        )
        self.recorder = ClickRecorder(
            self.tracking,
            maxsize=self.settings.CLICK_QUEUE_MAXSIZE,
            workers=self.settings.CLICK_WORKERS,
            drain_timeout=self.settings.CLICK_DRAIN_TIMEOUT,
        )
        self.resolution = ResolutionService(
            store,
            cache,
            recorder=self.recorder,
            cache_ttl=self.settings.RESOLUTION_CACHE_TTL,
        )
        self.analytics = AnalyticsService(
            store,
            cache,
            enabled=self.settings.ANALYTICS_ENABLED,
            cache_ttl=self.settings.ANALYTICS_CACHE_TTL,
            cache_max_items=self.settings.ANALYTICS_CACHE_MAX_ITEMS,
            dashboard_window_days=self.settings.DASHBOARD_WINDOW_DAYS,
            dashboard_top_links=self.settings.DASHBOARD_TOP_LINKS,
        )
        self.management = LinkManagementService(
            store,
            cache,
            default_limit=self.settings.LIST_DEFAULT_LIMIT,
            max_limit=self.settings.LIST_MAX_LIMIT,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, configure_logging: bool = False) -> "ShortLinkEngine":
        """Build an engine backed by SQL and Redis as configured in settings."""
        settings = settings or default_settings
        if configure_logging:
            setup_logging(settings)

        db_engine = get_engine(settings)
        store = SQLRecordStore(SessionManager(get_session_factory(db_engine)))

        redis_manager = RedisClientManager(
            settings.REDIS_URI,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        )
        cache = RedisCache(redis_manager.get_client())

        if settings.IPINFO_API_KEY:
            geo: GeoResolver = IpInfoGeoResolver(
                cache,
                api_key=settings.IPINFO_API_KEY,
                base_url=settings.IPINFO_BASE_URL,
                timeout=settings.IPINFO_TIMEOUT,
                cache_ttl=settings.GEO_CACHE_TTL,
            )
        else:
            geo = NullGeoResolver()

        return cls(
            store,
            cache,
            settings=settings,
            geo=geo,
            db_engine=db_engine,
            redis_manager=redis_manager,
        )

    async def start(self, create_schema: bool = False) -> None:
        """Start click recording, optionally creating missing tables first."""
        logger.info(f"Starting {self.settings.APP_NAME} v{self.settings.APP_VERSION}")
        if create_schema and self._db_engine is not None:
            await create_tables(self._db_engine)
            logger.info("Database tables created")
        if self._redis_manager is not None and not await self._redis_manager.ping():
            # Cache is optional; resolution falls back to the database
            logger.warning("Redis is unreachable, running without cache")
        self.recorder.start()

    async def close(self) -> None:
        """Drain queued clicks and release connections."""
        logger.info(f"Shutting down {self.settings.APP_NAME}")
        await self.recorder.stop(drain=True)
        await self.geo.close()
        if self._redis_manager is not None:
            await self._redis_manager.close()
        if self._db_engine is not None:
            await self._db_engine.dispose()

    async def __aenter__(self) -> "ShortLinkEngine":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def create_link(
        self,
        original_url: str,
        custom_alias: Optional[str] = None,
        owner_id: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> Link:
        return await self.creation.create_link(
            original_url,
            custom_alias=custom_alias,
            owner_id=owner_id,
            expires_at=expires_at,
        )

    async def resolve(self, code: str, metadata: Optional[RequestMetadata] = None) -> str:
        return await self.resolution.resolve(code, metadata)

    async def get_analytics(
        self,
        code: str,
        view: Union[AnalyticsView, str] = AnalyticsView.SUMMARY,
        options: Optional[Union[AnalyticsOptions, Dict[str, Any]]] = None,
    ) -> AnalyticsResult:
        return await self.analytics.get_analytics(code, view, options)

    async def get_dashboard(self) -> Dict[str, Any]:
        return await self.analytics.get_dashboard()

    async def get_link(self, code: str) -> Link:
        return await self.management.get_link(code)

    async def list_links(self, page: int = 1, limit: Optional[int] = None, is_active: Optional[bool] = None) -> LinkPage:
        return await self.management.list_links(page=page, limit=limit, is_active=is_active)

    async def list_links_by_owner(self, owner_id: str, page: int = 1, limit: Optional[int] = None) -> LinkPage:
        return await self.management.list_links_by_owner(owner_id, page=page, limit=limit)

    async def update_link(self, code: str, patch: Union[LinkUpdate, Dict[str, Any]]) -> Link:
        return await self.management.update_link(code, patch)

    async def deactivate_link(self, code: str) -> Link:
        return await self.management.deactivate_link(code)

    async def activate_link(self, code: str) -> Link:
        return await self.management.activate_link(code)

    async def delete_link(self, code: str, cascade_clicks: bool = True) -> None:
        await self.management.delete_link(code, cascade_clicks=cascade_clicks)

    async def is_alias_available(self, alias: str) -> bool:
        return await self.management.is_alias_available(alias)
