"""Session store: refresh-token records keyed by token digest."""

from datetime import datetime
from typing import Optional, Protocol
from uuid import UUID, uuid4

import structlog

from tower.database import DATABASE_ERRORS, get_pool
from tower.models.user import RefreshToken, RefreshTokenOwner
from tower.services.errors import StoreUnavailable
from tower.services.token_service import hash_refresh_token

logger = structlog.get_logger(__name__)


class SessionStore(Protocol):
    async def create(
        self, user_id: UUID, raw_token: str, expires_at: datetime, now: datetime
    ) -> RefreshToken:
        ...

    async def find_with_owner(self, raw_token: str) -> Optional[RefreshTokenOwner]:
        ...

    async def rotate(
        self,
        old_raw_token: str,
        user_id: UUID,
        new_raw_token: str,
        expires_at: datetime,
        now: datetime,
    ) -> bool:
        """Atomically delete the old record and insert the new one.

        Returns False, inserting nothing, if the old record is already gone.
        """
        ...

    async def delete(self, raw_token: str) -> bool:
        """Delete a record; returns whether one existed."""
        ...


class PostgresSessionStore:
    """Session store backed by the ``refresh_tokens`` table."""

    async def create(
        self, user_id: UUID, raw_token: str, expires_at: datetime, now: datetime
    ) -> RefreshToken:
        """Persist a new refresh-token record.

        Args:
            user_id: Owning user's UUID
            raw_token: The raw refresh token (stored as its SHA-256 digest)
            expires_at: Absolute expiry
            now: Creation timestamp

        Returns:
            The stored RefreshToken record

        Raises:
            StoreUnavailable: If the insert fails
        """
        record = RefreshToken(
            id=uuid4(),
            user_id=user_id,
            token_hash=hash_refresh_token(raw_token),
            expires_at=expires_at,
            created_at=now,
        )

        try:
            pool = await get_pool()
            async with pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO refresh_tokens (id, user_id, token_hash, expires_at, created_at)
                    VALUES ($1, $2, $3, $4, $5)
                    """,
                    record.id,
                    record.user_id,
                    record.token_hash,
                    record.expires_at,
                    record.created_at,
                )
        except DATABASE_ERRORS as e:
            logger.error("refresh_token_insert_failed", error=str(e))
            raise StoreUnavailable(str(e)) from e

        logger.info(
            "refresh_token_created",
            user_id=str(user_id),
            token_id=str(record.id),
            expires_at=expires_at.isoformat(),
        )
        return record

    async def find_with_owner(self, raw_token: str) -> Optional[RefreshTokenOwner]:
        """Look up a refresh token by exact match, joined to its user.

        Args:
            raw_token: The raw refresh token presented by the client

        Returns:
            RefreshTokenOwner, or None if no record matches

        Raises:
            StoreUnavailable: If the database cannot be queried
        """
        try:
            pool = await get_pool()
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT rt.id, rt.user_id, rt.expires_at, u.username
                    FROM refresh_tokens rt
                    JOIN users u ON u.id = rt.user_id
                    WHERE rt.token_hash = $1
                    """,
                    hash_refresh_token(raw_token),
                )
        except DATABASE_ERRORS as e:
            logger.error("refresh_token_lookup_failed", error=str(e))
            raise StoreUnavailable(str(e)) from e

        if row is None:
            return None

        return RefreshTokenOwner(
            token_id=row["id"],
            user_id=row["user_id"],
            username=row["username"],
            expires_at=row["expires_at"],
        )

    async def rotate(
        self,
        old_raw_token: str,
        user_id: UUID,
        new_raw_token: str,
        expires_at: datetime,
        now: datetime,
    ) -> bool:
        """Replace one refresh token with another in a single transaction.

        ``DELETE ... RETURNING`` takes the row lock, so of two concurrent
        rotations of the same token only one sees the row; the other gets
        no row back and inserts nothing.

        Returns:
            True if the old token was consumed and the new one stored

        Raises:
            StoreUnavailable: If the transaction fails (it is rolled back)
        """
        new_id = uuid4()

        try:
            pool = await get_pool()
            async with pool.acquire() as conn:
                async with conn.transaction():
                    deleted_id = await conn.fetchval(
                        """
                        DELETE FROM refresh_tokens
                        WHERE token_hash = $1
                        RETURNING id
                        """,
                        hash_refresh_token(old_raw_token),
                    )
                    if deleted_id is None:
                        return False

                    await conn.execute(
                        """
                        INSERT INTO refresh_tokens (id, user_id, token_hash, expires_at, created_at)
                        VALUES ($1, $2, $3, $4, $5)
                        """,
                        new_id,
                        user_id,
                        hash_refresh_token(new_raw_token),
                        expires_at,
                        now,
                    )
        except DATABASE_ERRORS as e:
            logger.error("refresh_token_rotation_failed", error=str(e))
            raise StoreUnavailable(str(e)) from e

        logger.info(
            "refresh_token_rotated",
            user_id=str(user_id),
            old_token_id=str(deleted_id),
            token_id=str(new_id),
        )
        return True

    async def delete(self, raw_token: str) -> bool:
        """Delete a refresh token if present.

        Raises:
            StoreUnavailable: If the delete fails
        """
        try:
            pool = await get_pool()
            async with pool.acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM refresh_tokens WHERE token_hash = $1",
                    hash_refresh_token(raw_token),
                )
        except DATABASE_ERRORS as e:
            logger.error("refresh_token_delete_failed", error=str(e))
            raise StoreUnavailable(str(e)) from e

        # asyncpg returns the command tag, e.g. "DELETE 1"
        deleted = result.split()[-1] != "0"
        logger.info("refresh_token_deleted", deleted=deleted)
        return deleted
