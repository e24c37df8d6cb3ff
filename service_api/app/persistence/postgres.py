"""
PostgreSQL persistence layer for users.
"""

import asyncio
from datetime import datetime, timezone
from typing import List, Optional

import asyncpg

from shared.errors import ConflictError, ExternalServiceError, ServiceException
from shared.logging import get_logger

from ..models import User

_USER_COLUMNS = "id, name, email, created_at"


class UserStore:
    """Authoritative store of users; email is unique."""

    def __init__(self, dsn: str, command_timeout: float = 30):
        self.dsn = dsn
        self.command_timeout = command_timeout
        self.logger = get_logger("api.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Open the pool and create the users table if needed."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=1,
                max_size=10,
                command_timeout=self.command_timeout
            )
            await self._create_tables()
        except Exception as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise ServiceException("POSTGRES_START_FAILED", str(e))

        self.logger.info("PostgreSQL persistence started")

    async def stop(self):
        """Close the pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL persistence stopped")

    async def _create_tables(self):
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id SERIAL PRIMARY KEY,
                    name VARCHAR(255) NOT NULL,
                    email VARCHAR(255) NOT NULL UNIQUE,
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_users_created_at ON users(created_at DESC, id DESC);
            """)

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise ExternalServiceError("postgres", "Connection pool not started")
        return self.pool

    async def insert_user(self, name: str, email: str) -> User:
        """Insert a user; a duplicate email raises ``ConflictError``."""
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(f"""
                    INSERT INTO users (name, email, created_at)
                    VALUES ($1, $2, $3)
                    RETURNING {_USER_COLUMNS}
                """, name, email, datetime.now(timezone.utc))
        except asyncpg.UniqueViolationError:
            self.logger.info("Duplicate email rejected", email=email)
            raise ConflictError("Email already exists", {"email": email})
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as e:
            self.logger.error("Error inserting user", name=name, error=str(e))
            raise ExternalServiceError("postgres", str(e))

        user = self._row_to_user(row)
        self.logger.info("User created", user_id=user.id, name=user.name)
        return user

    async def latest_users(self, count: int) -> List[User]:
        """Newest users first; ties on ``created_at`` go to the higher id."""
        return await self._fetch_users(f"""
            SELECT {_USER_COLUMNS} FROM users
            ORDER BY created_at DESC, id DESC
            LIMIT $1
        """, count)

    async def list_users(self) -> List[User]:
        """All users, newest first."""
        return await self._fetch_users(f"""
            SELECT {_USER_COLUMNS} FROM users
            ORDER BY created_at DESC, id DESC
        """)

    async def _fetch_users(self, query: str, *args) -> List[User]:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(query, *args)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as e:
            self.logger.error("Error retrieving users", error=str(e))
            raise ExternalServiceError("postgres", str(e))

        return [self._row_to_user(row) for row in rows]

    def _row_to_user(self, row) -> User:
        return User(
            id=row['id'],
            name=row['name'],
            email=row['email'],
            created_at=row['created_at'],
        )

    async def health_check(self) -> bool:
        """Check database health."""
        if self.pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception:
            return False
