"""
Redis-backed keyed store shared by the snapshot cache and the event feed.
"""

import asyncio
import json
from typing import Any, Optional

import redis.asyncio as redis

from shared.errors import CacheUnavailableError
from shared.logging import get_logger


class RedisStore:
    """Narrow get/set access to one Redis database.

    Every failure (unreachable backend, timeout, undecodable payload) is
    reported as ``CacheUnavailableError`` so callers can degrade.
    """

    def __init__(self, redis_url: str, timeout_seconds: float = 3.0):
        self.redis_url = redis_url
        self.timeout_seconds = timeout_seconds
        self.logger = get_logger("api.cache.redis")
        self.redis: Optional[redis.Redis] = None

    async def start(self):
        """Create the client; an unreachable server is logged, not raised."""
        self.redis = redis.from_url(
            self.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=self.timeout_seconds,
            socket_timeout=self.timeout_seconds,
            health_check_interval=30
        )

        if await self.health_check():
            self.logger.info("Redis store started", url=self.redis_url)
        else:
            self.logger.warning("Redis unreachable at startup, cache runs degraded", url=self.redis_url)

    async def stop(self):
        """Close the client."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis store stopped")

    async def _call(self, operation: str, key: str, coro_factory):
        if self.redis is None:
            raise CacheUnavailableError("Redis client not started", {"operation": operation, "key": key})
        try:
            return await asyncio.wait_for(coro_factory(self.redis), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise CacheUnavailableError("Redis call timed out", {"operation": operation, "key": key})
        except (redis.RedisError, OSError, UnicodeDecodeError) as e:
            # Non UTF-8 payloads fail inside the client when decoding responses
            raise CacheUnavailableError(str(e), {"operation": operation, "key": key})

    async def get_json(self, key: str) -> Optional[Any]:
        """Read and decode a JSON value; ``None`` when the key is absent."""
        raw = await self._call("get", key, lambda client: client.get(key))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            raise CacheUnavailableError(f"Undecodable value: {e}", {"operation": "get", "key": key})

    async def set_json(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        """Write a JSON value, replacing any previous one, with optional expiry."""
        payload = json.dumps(value)
        await self._call("set", key, lambda client: client.set(key, payload, ex=ttl_seconds))

    async def health_check(self) -> bool:
        """Check Redis health."""
        if self.redis is None:
            return False
        try:
            await asyncio.wait_for(self.redis.ping(), timeout=self.timeout_seconds)
            return True
        except (asyncio.TimeoutError, redis.RedisError, OSError):
            return False
