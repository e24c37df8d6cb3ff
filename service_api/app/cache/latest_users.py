"""
Read-through snapshot of the most recently created users.
"""

from typing import List, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from shared.errors import AdvisoryOutcome, CacheUnavailableError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..models import LatestSource, LatestUsers, User
from .redis_store import RedisStore

_users_adapter = TypeAdapter(List[User])


class LatestUsersCache:
    """Cache-aside view of the newest users with a fixed TTL.

    The snapshot is always recomputed from the user store, never patched
    in place, so concurrent writers cannot lose each other's updates.
    """

    def __init__(
        self,
        store: RedisStore,
        user_store,
        count: int = 3,
        ttl_seconds: int = 60,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.user_store = user_store
        self.count = count
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics
        self.key = f"users:latest:{count}"
        self.logger = get_logger("api.cache.latest_users")

    async def get_latest(self) -> LatestUsers:
        """Serve the snapshot, falling back to the user store on any cache miss."""
        cached = await self._read_snapshot()
        if cached is not None:
            self._count("cache_hits_total", cache_type="latest_users")
            self.logger.debug("Cache hit for latest users", count=len(cached))
            return LatestUsers(users=cached, source=LatestSource.CACHE)

        users = list(await self.user_store.latest_users(self.count))[:self.count]
        await self.invalidate(users)
        return LatestUsers(users=users, source=LatestSource.STORE)

    async def invalidate(self, users: List[User]) -> AdvisoryOutcome:
        """Overwrite the snapshot with ``users`` and restart its TTL."""
        snapshot = [user.model_dump(mode="json", by_alias=True) for user in users[:self.count]]
        try:
            await self.store.set_json(self.key, snapshot, ttl_seconds=self.ttl_seconds)
        except CacheUnavailableError as e:
            self.logger.error("Error caching latest users", error=e.message)
            return AdvisoryOutcome.failure("cache_latest_users", e.message)

        self.logger.info("Cached latest users", count=len(snapshot), ttl_seconds=self.ttl_seconds)
        return AdvisoryOutcome.success("cache_latest_users")

    async def refresh(self) -> AdvisoryOutcome:
        """Recompute the snapshot from the user store after a write."""
        try:
            users = list(await self.user_store.latest_users(self.count))
        except Exception as e:
            self.logger.error("Error querying latest users for cache refresh", error=str(e))
            return AdvisoryOutcome.failure("cache_latest_users", e)
        return await self.invalidate(users)

    async def _read_snapshot(self) -> Optional[List[User]]:
        try:
            raw = await self.store.get_json(self.key)
        except CacheUnavailableError as e:
            self.logger.error("Error retrieving cached users", error=e.message)
            self._count("cache_misses_total", cache_type="latest_users", reason="error")
            return None

        if raw is None:
            self.logger.info("Cache miss for latest users")
            self._count("cache_misses_total", cache_type="latest_users", reason="absent")
            return None

        try:
            users = _users_adapter.validate_python(raw)
        except PydanticValidationError as e:
            self.logger.warning("Discarding malformed latest users snapshot", error=str(e))
            self._count("cache_misses_total", cache_type="latest_users", reason="malformed")
            return None
        return users[:self.count]

    def _count(self, metric_name: str, **labels):
        if self.metrics is not None:
            self.metrics.increment_counter(metric_name, **labels)
