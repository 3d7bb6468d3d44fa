"""Services package exports."""

from tower.services.auth_service import AuthService, validate_credentials
from tower.services.logging_service import configure_logging, get_logger
from tower.services.password_hasher import PasswordHasher
from tower.services.token_service import AccessVerifier, TokenIssuer

__all__ = [
    "AccessVerifier",
    "AuthService",
    "PasswordHasher",
    "TokenIssuer",
    "configure_logging",
    "get_logger",
    "validate_credentials",
]
