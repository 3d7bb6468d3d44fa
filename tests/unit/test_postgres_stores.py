"""Unit tests for the Postgres credential and session stores.

asyncpg is replaced by a mock pool/connection; the tests check the SQL
issued and how driver errors are translated.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import asyncpg
import pytest

from tower.services.credential_store import PostgresCredentialStore
from tower.services.errors import StoreUnavailable, UsernameTaken
from tower.services.session_store import PostgresSessionStore
from tower.services.token_service import hash_refresh_token

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# asyncpg mock helpers
# ---------------------------------------------------------------------------

class _MockTransaction:
    def __init__(self):
        self.committed = False
        self.rolled_back = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.committed = True
        else:
            self.rolled_back = True
        return False


class MockConnection:
    """Mock asyncpg connection with common query methods."""

    def __init__(self):
        self.execute = AsyncMock()
        self.fetchrow = AsyncMock()
        self.fetchval = AsyncMock()
        self.fetch = AsyncMock()
        self.tx = _MockTransaction()
        self.transaction = MagicMock(return_value=self.tx)


class MockPool:
    """Mock asyncpg pool with acquire() context manager."""

    def __init__(self, conn: MockConnection):
        self._conn = conn

    def acquire(self):
        return _MockPoolAcquire(self._conn)


class _MockPoolAcquire:
    def __init__(self, conn):
        self._conn = conn

    async def __aenter__(self):
        return self._conn

    async def __aexit__(self, *args):
        pass


@pytest.fixture
def mock_pool():
    """Return (pool, connection) pair for database mocking."""
    conn = MockConnection()
    pool = MockPool(conn)
    return pool, conn


@pytest.fixture
def patch_pool(mock_pool):
    """Patch get_pool in both store modules."""
    pool, conn = mock_pool
    with (
        patch("tower.services.credential_store.get_pool", new_callable=AsyncMock) as cred_get_pool,
        patch("tower.services.session_store.get_pool", new_callable=AsyncMock) as sess_get_pool,
    ):
        cred_get_pool.return_value = pool
        sess_get_pool.return_value = pool
        yield conn


# ---------------------------------------------------------------------------
# Credential store
# ---------------------------------------------------------------------------

class TestPostgresCredentialStore:
    async def test_find_by_username_found(self, patch_pool):
        user_id = uuid4()
        patch_pool.fetchrow.return_value = {
            "id": user_id,
            "username": "alice",
            "password_hash": "$2b$04$hash",
            "created_at": NOW,
            "updated_at": NOW,
        }

        user, password_hash = await PostgresCredentialStore().find_by_username("alice")

        assert user.id == user_id
        assert user.username == "alice"
        assert password_hash == "$2b$04$hash"
        sql, arg = patch_pool.fetchrow.call_args[0]
        assert "WHERE username = $1" in sql
        assert arg == "alice"

    async def test_find_by_username_missing(self, patch_pool):
        patch_pool.fetchrow.return_value = None

        assert await PostgresCredentialStore().find_by_username("nobody") is None

    async def test_create_inserts_row(self, patch_pool):
        user = await PostgresCredentialStore().create("alice", "$2b$04$hash", NOW)

        assert user.username == "alice"
        assert user.created_at == user.updated_at == NOW
        args = patch_pool.execute.call_args[0]
        assert "INSERT INTO users" in args[0]
        assert args[1] == user.id
        assert args[2:] == ("alice", "$2b$04$hash", NOW, NOW)

    async def test_create_unique_violation(self, patch_pool):
        patch_pool.execute.side_effect = asyncpg.UniqueViolationError("duplicate key")

        with pytest.raises(UsernameTaken):
            await PostgresCredentialStore().create("alice", "hash", NOW)

    async def test_create_other_error(self, patch_pool):
        patch_pool.execute.side_effect = asyncpg.PostgresConnectionError("gone")

        with pytest.raises(StoreUnavailable):
            await PostgresCredentialStore().create("alice", "hash", NOW)

    async def test_pool_not_initialized(self):
        with patch(
            "tower.services.credential_store.get_pool",
            new_callable=AsyncMock,
            side_effect=RuntimeError("Database pool not initialized"),
        ):
            with pytest.raises(StoreUnavailable):
                await PostgresCredentialStore().find_by_username("alice")


# ---------------------------------------------------------------------------
# Session store
# ---------------------------------------------------------------------------

class TestPostgresSessionStore:
    async def test_create_stores_digest_not_token(self, patch_pool):
        user_id = uuid4()
        expires_at = NOW + timedelta(days=7)

        record = await PostgresSessionStore().create(user_id, "raw-token", expires_at, NOW)

        args = patch_pool.execute.call_args[0]
        assert "INSERT INTO refresh_tokens" in args[0]
        assert "raw-token" not in args
        assert args[3] == hash_refresh_token("raw-token")
        assert record.token_hash == hash_refresh_token("raw-token")
        assert record.expires_at == expires_at

    async def test_find_with_owner_joins_user(self, patch_pool):
        token_id, user_id = uuid4(), uuid4()
        patch_pool.fetchrow.return_value = {
            "id": token_id,
            "user_id": user_id,
            "username": "bob",
            "expires_at": NOW,
        }

        owner = await PostgresSessionStore().find_with_owner("raw-token")

        assert owner.token_id == token_id
        assert owner.user_id == user_id
        assert owner.username == "bob"
        sql, arg = patch_pool.fetchrow.call_args[0]
        assert "JOIN users" in sql
        assert arg == hash_refresh_token("raw-token")

    async def test_find_with_owner_missing(self, patch_pool):
        patch_pool.fetchrow.return_value = None

        assert await PostgresSessionStore().find_with_owner("raw-token") is None

    async def test_rotate_deletes_then_inserts_in_transaction(self, patch_pool):
        patch_pool.fetchval.return_value = uuid4()
        user_id = uuid4()

        rotated = await PostgresSessionStore().rotate(
            "old-token", user_id, "new-token", NOW + timedelta(days=7), NOW
        )

        assert rotated is True
        patch_pool.transaction.assert_called_once()
        assert patch_pool.tx.committed

        delete_sql, delete_arg = patch_pool.fetchval.call_args[0]
        assert "DELETE FROM refresh_tokens" in delete_sql
        assert "RETURNING id" in delete_sql
        assert delete_arg == hash_refresh_token("old-token")

        insert_args = patch_pool.execute.call_args[0]
        assert "INSERT INTO refresh_tokens" in insert_args[0]
        assert insert_args[2] == user_id
        assert insert_args[3] == hash_refresh_token("new-token")

    async def test_rotate_already_consumed(self, patch_pool):
        patch_pool.fetchval.return_value = None

        rotated = await PostgresSessionStore().rotate(
            "old-token", uuid4(), "new-token", NOW + timedelta(days=7), NOW
        )

        assert rotated is False
        patch_pool.execute.assert_not_awaited()

    async def test_rotate_insert_failure_rolls_back(self, patch_pool):
        patch_pool.fetchval.return_value = uuid4()
        patch_pool.execute.side_effect = asyncpg.UniqueViolationError("collision")

        with pytest.raises(StoreUnavailable):
            await PostgresSessionStore().rotate(
                "old-token", uuid4(), "new-token", NOW + timedelta(days=7), NOW
            )

        assert patch_pool.tx.rolled_back

    @pytest.mark.parametrize("tag,expected", [("DELETE 1", True), ("DELETE 0", False)])
    async def test_delete(self, patch_pool, tag, expected):
        patch_pool.execute.return_value = tag

        assert await PostgresSessionStore().delete("raw-token") is expected
        sql, arg = patch_pool.execute.call_args[0]
        assert sql.startswith("DELETE FROM refresh_tokens")
        assert arg == hash_refresh_token("raw-token")

    async def test_delete_failure(self, patch_pool):
        patch_pool.execute.side_effect = OSError("connection reset")

        with pytest.raises(StoreUnavailable):
            await PostgresSessionStore().delete("raw-token")
