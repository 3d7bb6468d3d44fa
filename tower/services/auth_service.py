"""Authentication service: registration, login, refresh rotation and logout."""

import asyncio
from datetime import datetime, timezone
from typing import Callable

import structlog

from tower.models.auth import (
    PASSWORD_MIN_LENGTH,
    USERNAME_MAX_LENGTH,
    USERNAME_MIN_LENGTH,
)
from tower.models.user import IssuedTokens
from tower.services.credential_store import CredentialStore
from tower.services.errors import (
    DuplicateUsername,
    ExpiredRefreshToken,
    HashingFailure,
    InternalFault,
    InvalidCredentials,
    InvalidInput,
    InvalidRefreshToken,
    StoreUnavailable,
    TokenSigningError,
    UsernameTaken,
)
from tower.services.password_hasher import PasswordHasher
from tower.services.session_store import SessionStore
from tower.services.token_service import TokenIssuer

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_credentials(username: str, password: str, min_password_length: int) -> None:
    """Check credential shape before any store is touched.

    Raises:
        InvalidInput: If the username or password length is out of range
    """
    if not isinstance(username, str) or not isinstance(password, str):
        raise InvalidInput("Username and password must be strings")
    if not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
        raise InvalidInput(
            f"Username must be {USERNAME_MIN_LENGTH}-{USERNAME_MAX_LENGTH} characters"
        )
    if len(password) < min_password_length:
        raise InvalidInput(
            f"Password must be at least {min_password_length} characters"
        )


class AuthService:
    """Orchestrates the credential store, session store, hasher and issuer.

    Every public method either returns normally or raises an ``AuthError``
    subclass; store, hashing and signing faults are translated here.

    Args:
        credentials: Username/password-hash store
        sessions: Refresh-token store
        hasher: Password hasher
        issuer: Token pair issuer (holds the signing secret)
        clock: Returns the current time; injected for tests
    """

    def __init__(
        self,
        credentials: CredentialStore,
        sessions: SessionStore,
        hasher: PasswordHasher,
        issuer: TokenIssuer,
        clock: Clock = utcnow,
    ):
        self.credentials = credentials
        self.sessions = sessions
        self.hasher = hasher
        self.issuer = issuer
        self.clock = clock

    async def register(self, username: str, password: str) -> IssuedTokens:
        """Create an account and open its first session.

        If the user row is written but the session cannot be opened, the
        caller gets InternalFault and can recover with ``login``.

        Raises:
            InvalidInput: Bad username/password shape
            DuplicateUsername: Username exists (including a lost insert race)
            InternalFault: Store, hashing, or signing failure
        """
        validate_credentials(username, password, PASSWORD_MIN_LENGTH)

        try:
            existing = await self.credentials.find_by_username(username)
        except StoreUnavailable as e:
            raise InternalFault("Database error") from e

        if existing is not None:
            logger.info("registration_rejected_duplicate", username=username)
            raise DuplicateUsername()

        try:
            password_hash = await asyncio.to_thread(self.hasher.hash, password)
        except HashingFailure as e:
            raise InternalFault("Password hashing failed") from e

        try:
            user = await self.credentials.create(username, password_hash, self.clock())
        except UsernameTaken as e:
            logger.info("registration_lost_race", username=username)
            raise DuplicateUsername() from e
        except StoreUnavailable as e:
            raise InternalFault("Failed to create user") from e

        tokens = await self._open_session(user.id, user.username)
        logger.info("user_registered", user_id=str(user.id), username=username)
        return tokens

    async def login(self, username: str, password: str) -> IssuedTokens:
        """Verify credentials and open a new, independent session.

        Raises:
            InvalidInput: Bad username/password shape
            InvalidCredentials: Unknown user or wrong password
            InternalFault: Store, hashing, or signing failure
        """
        validate_credentials(username, password, 1)

        try:
            result = await self.credentials.find_by_username(username)
        except StoreUnavailable as e:
            raise InternalFault("Database error") from e

        if result is None:
            logger.info("login_failed", reason="unknown_user")
            raise InvalidCredentials()

        user, password_hash = result

        try:
            valid = await asyncio.to_thread(self.hasher.verify, password, password_hash)
        except HashingFailure as e:
            raise InternalFault("Password verification failed") from e

        if not valid:
            logger.info("login_failed", reason="bad_password", user_id=str(user.id))
            raise InvalidCredentials()

        tokens = await self._open_session(user.id, user.username)
        logger.info("user_logged_in", user_id=str(user.id), username=user.username)
        return tokens

    async def refresh(self, refresh_token: str) -> IssuedTokens:
        """Exchange a refresh token for a new pair, consuming the old token.

        The old record is deleted and the new one inserted atomically. If two
        calls race on one token, only one rotation succeeds.

        Raises:
            InvalidRefreshToken: Unknown, already used, or revoked token
            ExpiredRefreshToken: Token record present but past its expiry
            InternalFault: Store or signing failure
        """
        if not refresh_token:
            raise InvalidRefreshToken()

        try:
            owner = await self.sessions.find_with_owner(refresh_token)
        except StoreUnavailable as e:
            raise InternalFault("Database error") from e

        if owner is None:
            logger.warning("refresh_token_not_found")
            raise InvalidRefreshToken()

        now = self.clock()
        if owner.expires_at <= now:
            logger.warning("refresh_token_expired", user_id=str(owner.user_id))
            raise ExpiredRefreshToken()

        tokens = self._issue(owner.user_id, owner.username, now)

        try:
            rotated = await self.sessions.rotate(
                refresh_token,
                owner.user_id,
                tokens.refresh_token,
                tokens.refresh_expires_at,
                now,
            )
        except StoreUnavailable as e:
            raise InternalFault("Failed to rotate refresh token") from e

        if not rotated:
            # Another call consumed this token between lookup and rotation.
            logger.warning("refresh_token_already_consumed", user_id=str(owner.user_id))
            raise InvalidRefreshToken()

        return tokens

    async def logout(self, refresh_token: str) -> None:
        """Revoke a refresh token. Unknown tokens are not an error.

        Raises:
            InternalFault: If the session store is unreachable
        """
        if not refresh_token:
            return

        try:
            deleted = await self.sessions.delete(refresh_token)
        except StoreUnavailable as e:
            raise InternalFault("Database error") from e

        logger.info("user_logged_out", session_found=deleted)

    def _issue(self, user_id, username: str, now: datetime) -> IssuedTokens:
        try:
            return self.issuer.issue(user_id, username, now)
        except TokenSigningError as e:
            logger.error("token_signing_failed", error=str(e))
            raise InternalFault("Token generation failed") from e

    async def _open_session(self, user_id, username: str) -> IssuedTokens:
        """Issue a pair and persist its refresh half."""
        now = self.clock()
        tokens = self._issue(user_id, username, now)

        try:
            await self.sessions.create(
                user_id, tokens.refresh_token, tokens.refresh_expires_at, now
            )
        except StoreUnavailable as e:
            raise InternalFault("Failed to store refresh token") from e

        return tokens
