"""
Shared fixtures for API service tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest
import redis.asyncio as redis

from shared.errors import ConflictError, ExternalServiceError
from shared.metrics import MetricsCollector
from prometheus_client import CollectorRegistry

from service_api.app.cache.latest_users import LatestUsersCache
from service_api.app.cache.redis_store import RedisStore
from service_api.app.events.feed import EventFeed
from service_api.app.models import User


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now = self.now + timedelta(seconds=seconds)


class FakeRedis:
    """In-memory stand-in for the redis.asyncio client, with expiry."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.data: Dict[str, Tuple[str, Optional[datetime]]] = {}
        self.set_calls: List[Tuple[str, Optional[int]]] = []

    async def get(self, key):
        entry = self.data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self.clock() >= expires_at:
            del self.data[key]
            return None
        return value

    async def set(self, key, value, ex=None):
        self.set_calls.append((key, ex))
        expires_at = self.clock() + timedelta(seconds=ex) if ex else None
        self.data[key] = (value, expires_at)
        return True

    async def ping(self):
        return True

    async def aclose(self):
        pass


class FailingRedis:
    """Client whose every call fails like an unreachable server."""

    async def get(self, key):
        raise redis.ConnectionError("Connection refused")

    async def set(self, key, value, ex=None):
        raise redis.ConnectionError("Connection refused")

    async def ping(self):
        raise redis.ConnectionError("Connection refused")

    async def aclose(self):
        pass


class InMemoryUserStore:
    """User store with a unique email constraint and insertion-order ids."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.users: List[User] = []
        self.fail = False
        self.latest_calls = 0

    def _check(self):
        if self.fail:
            raise ExternalServiceError("postgres", "connection lost")

    async def insert_user(self, name: str, email: str) -> User:
        self._check()
        if any(u.email == email for u in self.users):
            raise ConflictError("Email already exists", {"email": email})
        user = User(id=len(self.users) + 1, name=name, email=email, created_at=self.clock())
        self.users.append(user)
        return user

    async def latest_users(self, count: int) -> List[User]:
        self._check()
        self.latest_calls += 1
        return self._newest()[:count]

    async def list_users(self) -> List[User]:
        self._check()
        return self._newest()

    def _newest(self) -> List[User]:
        return sorted(self.users, key=lambda u: (u.created_at, u.id), reverse=True)

    async def health_check(self) -> bool:
        return not self.fail


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_redis(clock):
    return FakeRedis(clock)


@pytest.fixture
def redis_store(fake_redis):
    store = RedisStore("redis://localhost:6379/0")
    store.redis = fake_redis
    return store


@pytest.fixture
def failing_store():
    store = RedisStore("redis://localhost:6379/0")
    store.redis = FailingRedis()
    return store


@pytest.fixture
def user_store(clock):
    return InMemoryUserStore(clock)


@pytest.fixture
def metrics():
    return MetricsCollector("api-test", registry=CollectorRegistry())


@pytest.fixture
def latest_cache(redis_store, user_store, metrics):
    return LatestUsersCache(redis_store, user_store, count=3, ttl_seconds=60, metrics=metrics)


@pytest.fixture
def event_feed(redis_store, clock, metrics):
    return EventFeed(redis_store, max_events=10, clock=clock, metrics=metrics)
