"""Access-token signing/verification and refresh-token generation."""

import hashlib
import secrets
from datetime import datetime, timedelta
from uuid import UUID, uuid4

import jwt
import structlog

from tower.models.user import Identity, IssuedTokens
from tower.services.errors import TokenSigningError, Unauthorized

logger = structlog.get_logger(__name__)

# Constants
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 15
REFRESH_TOKEN_EXPIRE_DAYS = 7
REFRESH_TOKEN_BYTES = 32


def hash_refresh_token(raw_token: str) -> str:
    """Return the at-rest lookup key for a refresh token."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


class TokenIssuer:
    """Issues access/refresh token pairs.

    The output depends only on the arguments, the injected secret, and the
    randomness of the refresh token, so callers control time explicitly.
    """

    def __init__(
        self,
        secret: str,
        access_ttl: timedelta = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
        refresh_ttl: timedelta = timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS),
    ):
        if not secret:
            raise ValueError("JWT signing secret must not be empty")
        self._secret = secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def issue(self, user_id: UUID, username: str, now: datetime) -> IssuedTokens:
        """Create a signed access token and a fresh opaque refresh token.

        Args:
            user_id: Owning user's id (placed in the 'sub' claim)
            username: Username to include in the payload
            now: Issuance time; both expiries are computed from it

        Returns:
            IssuedTokens with both tokens and their expiry timestamps

        Raises:
            TokenSigningError: If the JWT cannot be encoded
        """
        access_expires_at = now + self.access_ttl
        payload = {
            "sub": str(user_id),
            "username": username,
            "jti": uuid4().hex,
            "iat": now,
            "exp": access_expires_at,
        }
        try:
            access_token = jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            raise TokenSigningError(str(e)) from e

        logger.debug(
            "token_pair_issued",
            user_id=str(user_id),
            access_expires_at=access_expires_at.isoformat(),
        )

        return IssuedTokens(
            access_token=access_token,
            refresh_token=secrets.token_urlsafe(REFRESH_TOKEN_BYTES),
            access_expires_at=access_expires_at,
            refresh_expires_at=now + self.refresh_ttl,
        )


class AccessVerifier:
    """Validates access tokens by signature and expiry alone."""

    def __init__(self, secret: str):
        self._secret = secret

    def verify(self, token: str) -> Identity:
        """Decode and validate a JWT access token.

        Args:
            token: Encoded JWT string

        Returns:
            Identity from the token payload

        Raises:
            Unauthorized: If the token is forged, expired, or malformed
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["exp", "sub"]},
            )
            return Identity(
                user_id=UUID(payload["sub"]),
                username=payload["username"],
            )
        except (jwt.InvalidTokenError, KeyError, ValueError, TypeError) as e:
            logger.info("access_token_rejected", error_type=type(e).__name__)
            raise Unauthorized() from e
