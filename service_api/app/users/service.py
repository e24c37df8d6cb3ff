"""
User write and read paths.
"""

from typing import List

from shared.errors import ValidationError
from shared.logging import get_logger

from ..cache.latest_users import LatestUsersCache
from ..kafka.producer import EventPublisher
from ..models import LatestUsers, User


class UserService:
    """Coordinates the primary store, the latest-users cache and the bus.

    Only the insert is authoritative. The cache refresh and the event
    publish that follow it are best-effort and never fail the request.
    """

    def __init__(self, user_store, latest_cache: LatestUsersCache, publisher: EventPublisher):
        self.user_store = user_store
        self.latest_cache = latest_cache
        self.publisher = publisher
        self.logger = get_logger("api.users")

    async def create_user(self, name: str, email: str) -> User:
        name = (name or "").strip()
        email = (email or "").strip()
        if not name or not email:
            raise ValidationError("Name and Email are required")

        self.logger.info("Creating user", name=name)
        user = await self.user_store.insert_user(name, email)

        refreshed = await self.latest_cache.refresh()
        published = await self.publisher.publish_user_created(user)
        if not (refreshed.ok and published.ok):
            self.logger.warning(
                "User created with degraded side effects",
                user_id=user.id,
                cache_refreshed=refreshed.ok,
                event_published=published.ok,
            )
        return user

    async def latest_users(self) -> LatestUsers:
        return await self.latest_cache.get_latest()

    async def list_users(self) -> List[User]:
        return await self.user_store.list_users()
