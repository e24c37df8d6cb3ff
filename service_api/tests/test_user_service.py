"""
Unit tests for the user write path.
"""

from unittest.mock import AsyncMock

import pytest

from service_api.app.cache.latest_users import LatestUsersCache
from service_api.app.models import LatestSource
from service_api.app.users.service import UserService
from shared.errors import AdvisoryOutcome, ConflictError, ExternalServiceError, ValidationError


class TestUserService:
    """Test cases for UserService."""

    @pytest.fixture
    def publisher(self):
        publisher = AsyncMock()
        publisher.publish_user_created.return_value = AdvisoryOutcome.success("publish_event")
        return publisher

    @pytest.fixture
    def user_service(self, user_store, latest_cache, publisher):
        return UserService(user_store, latest_cache, publisher)

    @pytest.mark.asyncio
    async def test_create_user_refreshes_cache_and_publishes(self, user_service, publisher):
        user = await user_service.create_user("Ada", "ada@example.com")

        latest = await user_service.latest_users()

        assert user.id == 1
        assert latest.source == LatestSource.CACHE
        assert [u.email for u in latest.users] == ["ada@example.com"]
        publisher.publish_user_created.assert_awaited_once_with(user)

    @pytest.mark.asyncio
    async def test_duplicate_email_is_conflict_without_side_effects(
        self, user_service, user_store, latest_cache, fake_redis, publisher, clock
    ):
        """A rejected insert leaves the cache and the bus untouched."""
        await user_store.insert_user("Ada", "ada@example.com")
        clock.advance(1)

        with pytest.raises(ConflictError) as exc_info:
            await user_service.create_user("Other", "ada@example.com")

        assert exc_info.value.status_code == 409
        assert fake_redis.set_calls == []
        publisher.publish_user_created.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name,email", [("", "a@example.com"), ("Ada", ""), ("  ", "  "), (None, None)])
    async def test_blank_fields_rejected(self, user_service, user_store, name, email):
        with pytest.raises(ValidationError, match="Name and Email are required"):
            await user_service.create_user(name, email)

        assert user_store.users == []

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, user_service, user_store, publisher):
        user_store.fail = True

        with pytest.raises(ExternalServiceError):
            await user_service.create_user("Ada", "ada@example.com")

        publisher.publish_user_created.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_publish_does_not_fail_creation(self, user_service, publisher, user_store):
        publisher.publish_user_created.return_value = AdvisoryOutcome.failure("publish_event", "broker down")

        user = await user_service.create_user("Ada", "ada@example.com")

        assert user in user_store.users

    @pytest.mark.asyncio
    async def test_unreachable_cache_does_not_fail_creation(self, failing_store, user_store, publisher):
        service = UserService(user_store, LatestUsersCache(failing_store, user_store), publisher)

        user = await service.create_user("Ada", "ada@example.com")

        assert user.email == "ada@example.com"
        publisher.publish_user_created.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_list_users_newest_first(self, user_service, clock):
        await user_service.create_user("A", "a@example.com")
        clock.advance(1)
        await user_service.create_user("B", "b@example.com")

        users = await user_service.list_users()

        assert [u.name for u in users] == ["B", "A"]
