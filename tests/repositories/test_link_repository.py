"""Tests for the link repository."""

import pytest
from datetime import timedelta

from shortlink.models.link import LinkCreate, LinkUpdate, utcnow
from shortlink.repositories.base import DuplicateEntityError
from shortlink.repositories.link_repository import LinkRepository
from tests.utils import create_test_link, random_url


@pytest.mark.repository
class TestLinkRepository:
    """Test suite for link repository."""

    @pytest.fixture
    def link_repository(self):
        """Return link repository instance."""
        return LinkRepository()

    @pytest.mark.asyncio
    async def test_create_link(self, test_db, link_repository):
        """Test link creation."""
        test_url = random_url()

        link = await link_repository.create_link(
            test_db,
            LinkCreate(original_url=test_url, code="testcreate", custom_alias="testcreate"),
        )

        assert link.id is not None
        assert link.original_url == test_url
        assert link.code == "testcreate"
        assert link.custom_alias == "testcreate"
        assert link.is_active is True
        assert link.click_count == 0

        db_link = await link_repository.get_by_code(test_db, "testcreate")
        assert db_link is not None
        assert db_link.id == link.id

    @pytest.mark.asyncio
    async def test_create_duplicate_code(self, test_db, link_repository):
        """A taken code is reported with the conflicting column."""
        await create_test_link(test_db, code="duplicate")

        with pytest.raises(DuplicateEntityError) as excinfo:
            await link_repository.create_link(
                test_db,
                {"original_url": random_url(), "code": "duplicate"},
            )

        assert excinfo.value.field_name == "code"
        assert excinfo.value.value == "duplicate"

    @pytest.mark.asyncio
    async def test_create_duplicate_original_url(self, test_db, link_repository):
        url = random_url()
        await create_test_link(test_db, original_url=url, code="first01")

        with pytest.raises(DuplicateEntityError) as excinfo:
            await link_repository.create_link(test_db, {"original_url": url, "code": "second2"})

        assert excinfo.value.field_name == "original_url"

    @pytest.mark.asyncio
    async def test_lookups(self, test_db, link_repository):
        url = random_url()
        link = await create_test_link(test_db, original_url=url, custom_alias="my-alias")

        assert (await link_repository.get_by_original_url(test_db, url)).id == link.id
        assert (await link_repository.get_by_alias(test_db, "my-alias")).id == link.id
        assert await link_repository.get_by_code(test_db, "nonexistent") is None
        assert await link_repository.get_by_original_url(test_db, random_url()) is None
        assert (await link_repository.get_by_id(test_db, link.id)).code == link.code
        assert await link_repository.get_by_id(test_db, 999999) is None

    @pytest.mark.asyncio
    async def test_existence_checks(self, test_db, link_repository):
        await create_test_link(test_db, code="gen1234")
        await create_test_link(test_db, custom_alias="promo")

        assert await link_repository.code_exists(test_db, "gen1234") is True
        assert await link_repository.code_exists(test_db, "missing") is False
        assert await link_repository.alias_exists(test_db, "promo") is True
        # Aliases share the code namespace
        assert await link_repository.alias_exists(test_db, "gen1234") is True
        assert await link_repository.alias_exists(test_db, "free-alias") is False

    @pytest.mark.asyncio
    async def test_update_by_code(self, test_db, link_repository):
        await create_test_link(test_db, code="upd1234")
        expiry = utcnow() + timedelta(days=3)

        updated = await link_repository.update_by_code(
            test_db, "upd1234", LinkUpdate(is_active=False, expires_at=expiry)
        )

        assert updated.is_active is False
        assert updated.expires_at == expiry

    @pytest.mark.asyncio
    async def test_update_unset_fields_untouched(self, test_db, link_repository):
        expiry = utcnow() + timedelta(days=3)
        await create_test_link(test_db, code="keep123", expires_at=expiry)

        updated = await link_repository.update_by_code(test_db, "keep123", LinkUpdate(is_active=False))

        assert updated.expires_at == expiry

    @pytest.mark.asyncio
    async def test_update_missing_link(self, test_db, link_repository):
        assert await link_repository.update_by_code(test_db, "nope", {"is_active": False}) is None

    @pytest.mark.asyncio
    async def test_delete_by_code(self, test_db, link_repository):
        await create_test_link(test_db, code="del1234")

        assert await link_repository.delete_by_code(test_db, "del1234") is True
        assert await link_repository.get_by_code(test_db, "del1234") is None
        assert await link_repository.delete_by_code(test_db, "del1234") is False

    @pytest.mark.asyncio
    async def test_record_access(self, test_db, link_repository):
        """Test click count incrementation."""
        link = await create_test_link(test_db, code="click12", click_count=5)
        accessed_at = utcnow()

        updated_rows = await link_repository.record_access(test_db, "click12", accessed_at)
        assert updated_rows == 1

        await test_db.refresh(link)
        assert link.click_count == 6
        assert link.last_accessed_at == accessed_at

    @pytest.mark.asyncio
    async def test_record_access_deleted_link(self, test_db, link_repository):
        assert await link_repository.record_access(test_db, "gone123") == 0

    @pytest.mark.asyncio
    async def test_list_links_newest_first(self, test_db, link_repository):
        base = utcnow() - timedelta(days=1)
        for i in range(5):
            await create_test_link(test_db, code=f"list{i:03d}", created_at=base + timedelta(minutes=i))

        first = await link_repository.list_links(test_db, skip=0, limit=2)
        second = await link_repository.list_links(test_db, skip=2, limit=2)

        assert [link.code for link in first] == ["list004", "list003"]
        assert [link.code for link in second] == ["list002", "list001"]
        assert await link_repository.count_links(test_db) == 5

    @pytest.mark.asyncio
    async def test_list_links_filters(self, test_db, link_repository):
        await create_test_link(test_db, code="own0001", owner_id="alice")
        await create_test_link(test_db, code="own0002", owner_id="alice", is_active=False)
        await create_test_link(test_db, code="own0003", owner_id="bob")
        await create_test_link(test_db, code="anon001")

        alice = await link_repository.list_links(test_db, owner_id="alice")
        inactive = await link_repository.list_links(test_db, is_active=False)

        assert {link.code for link in alice} == {"own0001", "own0002"}
        assert [link.code for link in inactive] == ["own0002"]
        assert await link_repository.count_links(test_db, owner_id="alice") == 2
        assert await link_repository.count_links(test_db, is_active=True) == 3
        assert await link_repository.count_links(test_db, is_active=True, owner_id="alice") == 1

    @pytest.mark.asyncio
    async def test_get_top_links(self, test_db, link_repository):
        await create_test_link(test_db, code="top0001", click_count=3)
        await create_test_link(test_db, code="top0002", click_count=10)
        await create_test_link(test_db, code="top0003", click_count=0)

        top = await link_repository.get_top_links(test_db, limit=2)

        assert [link.code for link in top] == ["top0002", "top0001"]
