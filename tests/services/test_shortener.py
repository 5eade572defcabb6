"""Tests for the link creation service."""

from datetime import timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from shortlink.cache.keys import resolution_key
from shortlink.models.link import Link, utcnow
from shortlink.repositories.base import DuplicateEntityError, RepositoryError
from shortlink.repositories.store import RecordStore
from shortlink.services.exceptions import (
    AliasTakenError,
    CreationConflictError,
    ExpirationInPastError,
    InvalidAliasFormatError,
    InvalidUrlError,
    LinkStoreError,
)
from shortlink.services.shortener import LinkCreationService


@pytest.fixture
def creation_service(record_store, cache):
    return LinkCreationService(record_store, cache, cache_ttl=3600)


def mock_store() -> AsyncMock:
    store = AsyncMock(spec=RecordStore)
    store.find_by_original_url.return_value = None
    store.code_exists.return_value = False
    store.alias_exists.return_value = False
    return store


def stored_link(**kwargs) -> Link:
    data = {"id": 1, "original_url": "https://example.com/a", "code": "abc1234"}
    data.update(kwargs)
    return Link(**data)


class TestLinkCreation:

    @pytest.mark.asyncio
    async def test_create_generates_code(self, creation_service, record_store, mock_redis):
        link = await creation_service.create_link("https://example.com/path/")

        assert len(link.code) == 7
        assert link.original_url == "https://example.com/path"
        assert link.custom_alias is None
        assert link.is_active is True
        assert await record_store.find_by_code(link.code) is not None

        # Resolution entry is written through
        assert mock_redis.data[resolution_key(link.code)] == '"https://example.com/path"'
        assert mock_redis.expiry[resolution_key(link.code)] == 3600

    @pytest.mark.asyncio
    async def test_same_url_returns_existing(self, creation_service):
        first = await creation_service.create_link("example.com/a")
        second = await creation_service.create_link("https://example.com/a/")

        assert second.id == first.id
        assert second.code == first.code

    @pytest.mark.asyncio
    async def test_existing_url_ignores_new_alias(self, creation_service):
        first = await creation_service.create_link("https://example.com/a")
        second = await creation_service.create_link("https://example.com/a", custom_alias="promo")

        assert second.code == first.code
        assert second.custom_alias is None

    @pytest.mark.asyncio
    async def test_custom_alias(self, creation_service, record_store):
        link = await creation_service.create_link(
            "https://example.com/a", custom_alias="promo", owner_id="user-1"
        )

        assert link.code == "promo"
        assert link.custom_alias == "promo"
        assert link.owner_id == "user-1"
        assert await record_store.alias_exists("promo") is True

    @pytest.mark.asyncio
    async def test_alias_taken(self, creation_service, record_store):
        await creation_service.create_link("https://example.com/a", custom_alias="promo")

        with pytest.raises(AliasTakenError):
            await creation_service.create_link("https://example.com/b", custom_alias="promo")

        assert await record_store.find_by_original_url("https://example.com/b") is None

    @pytest.mark.asyncio
    async def test_alias_taken_by_generated_code(self, record_store, cache):
        service = LinkCreationService(record_store, cache)
        existing = await service.create_link("https://example.com/a")

        with pytest.raises(AliasTakenError):
            await service.create_link("https://example.com/b", custom_alias=existing.code)

    @pytest.mark.asyncio
    async def test_invalid_alias(self, creation_service, record_store):
        with pytest.raises(InvalidAliasFormatError):
            await creation_service.create_link("https://example.com/a", custom_alias="a b!")

        assert await record_store.find_by_original_url("https://example.com/a") is None

    @pytest.mark.asyncio
    async def test_invalid_url(self, creation_service):
        with pytest.raises(InvalidUrlError):
            await creation_service.create_link("https://")

    @pytest.mark.asyncio
    async def test_expiry_in_past(self, creation_service, record_store):
        with pytest.raises(ExpirationInPastError):
            await creation_service.create_link(
                "https://example.com/a", expires_at=utcnow() - timedelta(minutes=1)
            )

        assert await record_store.find_by_original_url("https://example.com/a") is None

    @pytest.mark.asyncio
    async def test_aware_expiry_stored_as_utc(self, creation_service):
        expires_at = (utcnow() + timedelta(days=1)).replace(tzinfo=timezone.utc)

        link = await creation_service.create_link("https://example.com/a", expires_at=expires_at)

        assert link.expires_at == expires_at.replace(tzinfo=None)

    @pytest.mark.asyncio
    async def test_cache_ttl_capped_by_expiry(self, creation_service, mock_redis):
        link = await creation_service.create_link(
            "https://example.com/a", expires_at=utcnow() + timedelta(minutes=10)
        )

        ttl = mock_redis.expiry[resolution_key(link.code)]
        assert 0 < ttl <= 600

    @pytest.mark.asyncio
    async def test_cache_failure_does_not_fail_creation(self, creation_service, record_store, mock_redis):
        mock_redis.failing = True

        link = await creation_service.create_link("https://example.com/a")

        assert await record_store.find_by_code(link.code) is not None


class TestCreationRaces:

    @pytest.mark.asyncio
    async def test_lost_url_race_returns_winner(self, cache):
        store = mock_store()
        winner = stored_link(code="winner1")
        store.find_by_original_url.side_effect = [None, winner]
        store.create.side_effect = DuplicateEntityError(Link, "original_url", "https://example.com/a")

        link = await LinkCreationService(store, cache).create_link("https://example.com/a")

        assert link is winner
        assert store.create.await_count == 1

    @pytest.mark.asyncio
    async def test_lost_alias_race(self, cache):
        """The alias is rechecked on retry and is now taken."""
        store = mock_store()
        store.alias_exists.side_effect = [False, True]
        store.create.side_effect = DuplicateEntityError(Link, "custom_alias", "promo")

        with pytest.raises(AliasTakenError):
            await LinkCreationService(store, cache).create_link(
                "https://example.com/a", custom_alias="promo"
            )

        assert store.create.await_count == 1

    @pytest.mark.asyncio
    async def test_code_conflict_retried(self, cache):
        store = mock_store()
        created = stored_link()
        store.create.side_effect = [DuplicateEntityError(Link, "code", "x"), created]

        link = await LinkCreationService(store, cache).create_link("https://example.com/a")

        assert link is created
        assert store.create.await_count == 2

    @pytest.mark.asyncio
    async def test_repeated_code_conflict(self, cache):
        store = mock_store()
        store.create.side_effect = DuplicateEntityError(Link, "code", "x")

        with pytest.raises(CreationConflictError):
            await LinkCreationService(store, cache, max_attempts=2).create_link("https://example.com/a")

        assert store.create.await_count == 2

    @pytest.mark.asyncio
    async def test_store_failure(self, cache):
        store = mock_store()
        store.create.side_effect = RepositoryError("database is down")

        with pytest.raises(LinkStoreError):
            await LinkCreationService(store, cache).create_link("https://example.com/a")

    @pytest.mark.asyncio
    async def test_lookup_failure(self, cache):
        store = mock_store()
        store.find_by_original_url.side_effect = RepositoryError("database is down")

        with pytest.raises(LinkStoreError):
            await LinkCreationService(store, cache).create_link("https://example.com/a")

        store.create.assert_not_awaited()
