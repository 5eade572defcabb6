"""Database base configuration for SQLAlchemy with SQLModel.

This module provides base database configuration for async SQLAlchemy with SQLModel.
It includes:
- Engine configuration per environment
- Session factory setup
- Metadata management
"""

from typing import Dict, Optional
import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel

from shortlink.core.config import Settings, settings as default_settings

# Table models must be imported so they register with SQLModel.metadata
from shortlink.models import ClickEvent, Link  # noqa: F401

logger = logging.getLogger(__name__)


def get_engine_config(settings: Settings) -> Dict:
    """Get the appropriate engine configuration based on the environment.

    Returns:
        Dict: Engine configuration parameters for the current environment.
    """
    uri = str(settings.SQLALCHEMY_DATABASE_URI)
    if settings.ENVIRONMENT.value == "testing" or uri.startswith("sqlite"):
        return {
            "echo": settings.DB_ECHO,
            "poolclass": NullPool,
        }
    return {
        "echo": settings.DB_ECHO,
        "pool_size": settings.POSTGRES_POOL_SIZE,
        "max_overflow": settings.POSTGRES_POOL_MAX_OVERFLOW,
        "pool_timeout": settings.POSTGRES_POOL_TIMEOUT,
        "pool_recycle": settings.POSTGRES_POOL_RECYCLE,
        "pool_pre_ping": True,
    }


def get_engine(settings: Optional[Settings] = None) -> AsyncEngine:
    """Create and configure an async SQLAlchemy engine.

    Returns:
        AsyncEngine: Configured SQLAlchemy async engine instance.
    """
    settings = settings or default_settings
    engine_url = str(settings.SQLALCHEMY_DATABASE_URI)
    logger.info(f"Creating database engine for {engine_url.split('@')[-1]}")
    return create_async_engine(engine_url, **get_engine_config(settings))


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Build the session factory used by the record store."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables known to SQLModel metadata if they are missing."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def drop_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
