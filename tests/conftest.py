"""Test fixtures for the short-link engine."""

import fnmatch
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.ext.asyncio import AsyncSession

from shortlink.cache.redis_cache import RedisCache
from shortlink.core.config import Settings
from shortlink.db.base import create_tables, drop_tables, get_engine, get_session_factory
from shortlink.db.session import SessionManager
from shortlink.engine import ShortLinkEngine
from shortlink.repositories.store import SQLRecordStore


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        ENVIRONMENT="testing",
        DEBUG=True,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        LOG_TO_FILE=False,
        IPINFO_API_KEY="",
        CLICK_WORKERS=1,
        CLICK_DRAIN_TIMEOUT=2.0,
    )


@pytest_asyncio.fixture
async def test_engine(test_settings):
    """Create a test database engine with the tables in place."""
    engine = get_engine(test_settings)
    await create_tables(engine)

    yield engine

    await drop_tables(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create isolated test database session."""
    async_session = get_session_factory(test_engine)

    async with async_session() as session:
        await session.begin()
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest.fixture
def session_manager(test_engine) -> SessionManager:
    return SessionManager(get_session_factory(test_engine))


@pytest.fixture
def record_store(session_manager) -> SQLRecordStore:
    return SQLRecordStore(session_manager)


class MockRedis:
    """In-memory stand-in for a ``redis.asyncio`` client with decoded responses.

    Expiry is recorded but never enforced. Setting ``failing`` makes every
    command raise a redis ConnectionError.
    """

    def __init__(self):
        self.data = {}
        self.expiry = {}
        self.failing = False

    def _check(self):
        if self.failing:
            raise RedisConnectionError("Connection refused")

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.data[key] = value
        if ex:
            self.expiry[key] = ex
        else:
            self.expiry.pop(key, None)
        return True

    async def delete(self, *keys):
        self._check()
        deleted = 0
        for key in keys:
            if key in self.data:
                del self.data[key]
                self.expiry.pop(key, None)
                deleted += 1
        return deleted

    async def exists(self, *keys):
        self._check()
        return sum(1 for key in keys if key in self.data)

    async def incrby(self, key, amount=1):
        self._check()
        value = int(self.data.get(key, 0)) + amount
        self.data[key] = str(value)
        return value

    async def ttl(self, key):
        self._check()
        if key not in self.data:
            return -2
        return self.expiry.get(key, -1)

    async def scan_iter(self, match=None):
        self._check()
        for key in list(self.data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def ping(self):
        self._check()
        return True

    async def aclose(self):
        pass


@pytest.fixture
def mock_redis() -> MockRedis:
    """Mock Redis for testing."""
    return MockRedis()


@pytest.fixture
def cache(mock_redis) -> RedisCache:
    return RedisCache(mock_redis)


@pytest_asyncio.fixture
async def engine(record_store, cache, test_settings) -> AsyncGenerator[ShortLinkEngine, None]:
    """A started engine over the test database and the mock Redis."""
    short_link_engine = ShortLinkEngine(record_store, cache, settings=test_settings)
    await short_link_engine.start()

    yield short_link_engine

    await short_link_engine.close()
