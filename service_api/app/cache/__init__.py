from .latest_users import LatestUsersCache
from .redis_store import RedisStore

__all__ = ["LatestUsersCache", "RedisStore"]
