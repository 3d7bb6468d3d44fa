"""Models package exports."""

from tower.models.auth import (
    ErrorResponse,
    IdentityResponse,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    TokenPairResponse,
)
from tower.models.user import (
    Identity,
    IssuedTokens,
    RefreshToken,
    RefreshTokenOwner,
    User,
)

__all__ = [
    "ErrorResponse",
    "Identity",
    "IdentityResponse",
    "IssuedTokens",
    "LoginRequest",
    "LogoutRequest",
    "MessageResponse",
    "RefreshRequest",
    "RefreshToken",
    "RefreshTokenOwner",
    "RegisterRequest",
    "TokenPairResponse",
    "User",
]
