"""In-process credential and session stores for development and tests."""

import threading
from datetime import datetime
from typing import Dict, Optional
from uuid import UUID, uuid4

import structlog

from tower.models.user import RefreshToken, RefreshTokenOwner, User
from tower.services.errors import StoreUnavailable, UsernameTaken
from tower.services.token_service import hash_refresh_token

logger = structlog.get_logger(__name__)


class MemoryCredentialStore:
    """Users held in a dict; nothing survives a restart."""

    def __init__(self) -> None:
        self.users: Dict[UUID, User] = {}
        self.password_hashes: Dict[UUID, str] = {}
        self._by_username: Dict[str, UUID] = {}
        self._lock = threading.Lock()

    async def find_by_username(self, username: str) -> Optional[tuple[User, str]]:
        with self._lock:
            user_id = self._by_username.get(username)
            if user_id is None:
                return None
            return self.users[user_id], self.password_hashes[user_id]

    async def create(self, username: str, password_hash: str, now: datetime) -> User:
        with self._lock:
            if username in self._by_username:
                raise UsernameTaken(username)
            user = User(id=uuid4(), username=username, created_at=now, updated_at=now)
            self.users[user.id] = user
            self.password_hashes[user.id] = password_hash
            self._by_username[username] = user.id

        logger.info("user_created", user_id=str(user.id), username=username)
        return user

    def get_user(self, user_id: UUID) -> Optional[User]:
        with self._lock:
            return self.users.get(user_id)


class MemorySessionStore:
    """Refresh tokens held in a dict keyed by token digest.

    Args:
        credentials: Store used to resolve the owning username on lookup
    """

    def __init__(self, credentials: MemoryCredentialStore) -> None:
        self.credentials = credentials
        self.tokens: Dict[str, RefreshToken] = {}
        self._lock = threading.Lock()

    def _insert(
        self, user_id: UUID, raw_token: str, expires_at: datetime, now: datetime
    ) -> RefreshToken:
        record = RefreshToken(
            id=uuid4(),
            user_id=user_id,
            token_hash=hash_refresh_token(raw_token),
            expires_at=expires_at,
            created_at=now,
        )
        if record.token_hash in self.tokens:
            raise StoreUnavailable("refresh token collision")
        self.tokens[record.token_hash] = record
        return record

    async def create(
        self, user_id: UUID, raw_token: str, expires_at: datetime, now: datetime
    ) -> RefreshToken:
        with self._lock:
            record = self._insert(user_id, raw_token, expires_at, now)
        logger.info("refresh_token_created", user_id=str(user_id), token_id=str(record.id))
        return record

    async def find_with_owner(self, raw_token: str) -> Optional[RefreshTokenOwner]:
        with self._lock:
            record = self.tokens.get(hash_refresh_token(raw_token))
        if record is None:
            return None

        user = self.credentials.get_user(record.user_id)
        if user is None:
            return None

        return RefreshTokenOwner(
            token_id=record.id,
            user_id=record.user_id,
            username=user.username,
            expires_at=record.expires_at,
        )

    async def rotate(
        self,
        old_raw_token: str,
        user_id: UUID,
        new_raw_token: str,
        expires_at: datetime,
        now: datetime,
    ) -> bool:
        with self._lock:
            old = self.tokens.pop(hash_refresh_token(old_raw_token), None)
            if old is None:
                return False
            try:
                record = self._insert(user_id, new_raw_token, expires_at, now)
            except StoreUnavailable:
                self.tokens[old.token_hash] = old
                raise

        logger.info(
            "refresh_token_rotated",
            user_id=str(user_id),
            old_token_id=str(old.id),
            token_id=str(record.id),
        )
        return True

    async def delete(self, raw_token: str) -> bool:
        with self._lock:
            deleted = self.tokens.pop(hash_refresh_token(raw_token), None) is not None
        logger.info("refresh_token_deleted", deleted=deleted)
        return deleted
