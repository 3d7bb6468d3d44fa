"""User, session, and token records."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class User(BaseModel):
    """A registered user. The password hash is kept out of this model."""

    id: UUID
    username: str
    created_at: datetime
    updated_at: datetime


class RefreshToken(BaseModel):
    """A persisted refresh-token session.

    Only the SHA-256 digest of the token string is stored.
    """

    id: UUID
    user_id: UUID
    token_hash: str
    expires_at: datetime
    created_at: datetime


class RefreshTokenOwner(BaseModel):
    """A refresh-token record joined to its owning user."""

    token_id: UUID
    user_id: UUID
    username: str
    expires_at: datetime


class Identity(BaseModel):
    """The authenticated principal carried by an access token."""

    user_id: UUID
    username: str


class IssuedTokens(BaseModel):
    """Output of the token issuer: a signed access token plus a refresh token."""

    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime
