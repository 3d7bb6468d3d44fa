"""Credential store: username to password-hash records."""

from datetime import datetime
from typing import Optional, Protocol
from uuid import uuid4

import asyncpg
import structlog

from tower.database import DATABASE_ERRORS, get_pool
from tower.models.user import User
from tower.services.errors import StoreUnavailable, UsernameTaken

logger = structlog.get_logger(__name__)


class CredentialStore(Protocol):
    async def find_by_username(self, username: str) -> Optional[tuple[User, str]]:
        """Return (User, password_hash) or None."""
        ...

    async def create(self, username: str, password_hash: str, now: datetime) -> User:
        """Insert a user; raise UsernameTaken if the name exists."""
        ...


class PostgresCredentialStore:
    """Credential store backed by the ``users`` table.

    Uniqueness is decided by the ``users_username_key`` constraint, so two
    concurrent inserts of the same username produce exactly one row.
    """

    async def find_by_username(self, username: str) -> Optional[tuple[User, str]]:
        """Get a user by exact username.

        Args:
            username: Username to look up

        Returns:
            Tuple of (User, password_hash) or None if not found

        Raises:
            StoreUnavailable: If the database cannot be queried
        """
        try:
            pool = await get_pool()
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT id, username, password_hash, created_at, updated_at
                    FROM users
                    WHERE username = $1
                    """,
                    username,
                )
        except DATABASE_ERRORS as e:
            logger.error("user_lookup_failed", error=str(e))
            raise StoreUnavailable(str(e)) from e

        if row is None:
            return None

        user = User(
            id=row["id"],
            username=row["username"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
        return user, row["password_hash"]

    async def create(self, username: str, password_hash: str, now: datetime) -> User:
        """Create a new user row.

        Args:
            username: Unique username
            password_hash: Output of the password hasher
            now: Creation timestamp (used for created_at and updated_at)

        Returns:
            Created User model

        Raises:
            UsernameTaken: If the username already exists
            StoreUnavailable: If the insert fails for any other reason
        """
        user_id = uuid4()

        try:
            pool = await get_pool()
            async with pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO users (id, username, password_hash, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5)
                    """,
                    user_id,
                    username,
                    password_hash,
                    now,
                    now,
                )
        except asyncpg.UniqueViolationError as e:
            raise UsernameTaken(username) from e
        except DATABASE_ERRORS as e:
            logger.error("user_insert_failed", error=str(e))
            raise StoreUnavailable(str(e)) from e

        logger.info("user_created", user_id=str(user_id), username=username)

        return User(id=user_id, username=username, created_at=now, updated_at=now)
