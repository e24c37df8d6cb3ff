"""
Unit tests for the Redis store.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from service_api.app.cache.latest_users import LatestUsersCache
from service_api.app.cache.redis_store import RedisStore
from service_api.app.events.feed import EventFeed
from service_api.app.kafka.consumer import EventSubscriber, Reply
from service_api.app.models import LatestSource
from shared.errors import CacheUnavailableError


class TestRedisStore:
    """Test cases for RedisStore."""

    @pytest.mark.asyncio
    async def test_set_and_get_json(self, redis_store):
        await redis_store.set_json("k", {"a": [1, 2]}, ttl_seconds=5)

        assert await redis_store.get_json("k") == {"a": [1, 2]}

    @pytest.mark.asyncio
    async def test_get_missing_key(self, redis_store):
        assert await redis_store.get_json("missing") is None

    @pytest.mark.asyncio
    async def test_undecodable_value_raises(self, redis_store, fake_redis):
        await fake_redis.set("k", "{broken")

        with pytest.raises(CacheUnavailableError):
            await redis_store.get_json("k")

    @pytest.mark.asyncio
    async def test_connection_error_raises_cache_unavailable(self, failing_store):
        with pytest.raises(CacheUnavailableError) as exc_info:
            await failing_store.get_json("k")

        assert exc_info.value.code == "CACHE_UNAVAILABLE"
        assert exc_info.value.details == {"operation": "get", "key": "k"}

    @pytest.mark.asyncio
    async def test_timeout_raises_cache_unavailable(self):
        store = RedisStore("redis://localhost:6379/0", timeout_seconds=0.01)

        async def slow_get(key):
            await asyncio.sleep(1)

        store.redis = AsyncMock()
        store.redis.get = slow_get

        with pytest.raises(CacheUnavailableError, match="timed out"):
            await store.get_json("k")

    @pytest.mark.asyncio
    async def test_not_started_raises_cache_unavailable(self):
        store = RedisStore("redis://localhost:6379/0")

        with pytest.raises(CacheUnavailableError):
            await store.set_json("k", [])

    @pytest.mark.asyncio
    async def test_health_check(self, redis_store, failing_store):
        assert await redis_store.health_check() is True
        assert await failing_store.health_check() is False

    @pytest.mark.asyncio
    async def test_start_with_unreachable_server_does_not_raise(self):
        """An unreachable server leaves the store degraded, not broken."""
        store = RedisStore("redis://localhost:6379/0")
        client = AsyncMock()
        client.ping.side_effect = OSError("Connection refused")

        with patch("redis.asyncio.from_url", return_value=client):
            await store.start()

        assert store.redis is client

    @pytest.mark.asyncio
    async def test_stop_closes_client(self, redis_store, fake_redis):
        await redis_store.stop()

        assert redis_store.redis is None


class TestUndecodableValues:
    """Values that are not valid UTF-8 degrade like any other cache failure."""

    @pytest.fixture
    def garbled_store(self):
        store = RedisStore("redis://localhost:6379/0")
        store.redis = AsyncMock()
        store.redis.get.side_effect = UnicodeDecodeError("utf-8", b"\xff\xfe", 0, 1, "invalid start byte")
        return store

    @pytest.mark.asyncio
    async def test_get_raises_cache_unavailable(self, garbled_store):
        with pytest.raises(CacheUnavailableError) as exc_info:
            await garbled_store.get_json("events:feed")

        assert exc_info.value.details == {"operation": "get", "key": "events:feed"}

    @pytest.mark.asyncio
    async def test_latest_users_fall_back_to_store(self, garbled_store, user_store):
        await user_store.insert_user("Ada", "ada@example.com")
        cache = LatestUsersCache(garbled_store, user_store)

        latest = await cache.get_latest()

        assert latest.source == LatestSource.STORE
        assert [u.email for u in latest.users] == ["ada@example.com"]

    @pytest.mark.asyncio
    async def test_feed_reads_empty_and_append_reports_failure(self, garbled_store, clock):
        feed = EventFeed(garbled_store, clock=clock)

        assert await feed.get_all() == []
        outcome = await feed.append("sql", "User created: Ada (ada@example.com)")
        assert outcome.ok is False

    @pytest.mark.asyncio
    async def test_subscriber_still_acks(self, garbled_store, clock):
        subscriber = EventSubscriber("localhost:9092", "g", "t", EventFeed(garbled_store, clock=clock))
        payload = b'{"source": "sql", "message": "User created: Ada (ada@example.com)"}'

        assert await subscriber.handle_message(payload) is Reply.ACK
