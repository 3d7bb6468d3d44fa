"""Auth request and response models with validation."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 6


class _CamelModel(BaseModel):
    """Accepts both camelCase and snake_case keys, serializes camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(_CamelModel):
    """New account credentials.

    Attributes:
        username: Unique account name (3-50 chars)
        password: Plain-text password (min 6 chars)
    """

    username: str = Field(
        ..., min_length=USERNAME_MIN_LENGTH, max_length=USERNAME_MAX_LENGTH
    )
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)


class LoginRequest(_CamelModel):
    """Login credentials for authentication."""

    username: str = Field(
        ..., min_length=USERNAME_MIN_LENGTH, max_length=USERNAME_MAX_LENGTH
    )
    password: str = Field(..., min_length=1)


class RefreshRequest(_CamelModel):
    """Request to exchange a refresh token for a new token pair.

    An empty or missing token is rejected by the service as an invalid
    refresh token (401), not as malformed input.
    """

    refresh_token: str = ""


class LogoutRequest(_CamelModel):
    """Request to revoke a refresh token."""

    refresh_token: str


class TokenPairResponse(_CamelModel):
    """Successful authentication response with token pair.

    Attributes:
        access_token: Short-lived JWT for API access
        refresh_token: Single-use token for obtaining a new pair
        token_type: Always "bearer"
        expires_in: Access token lifetime in seconds
    """

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(ge=1, description="Access token lifetime in seconds")


class MessageResponse(BaseModel):
    message: str


class IdentityResponse(_CamelModel):
    """Identity attached to the request by the bearer gate."""

    user_id: UUID
    username: str


class ErrorResponse(BaseModel):
    """Error body shared by every failure path."""

    error: str
    detail: str
    correlation_id: str
