"""FastAPI dependencies: service lookup and the bearer authorization gate."""

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from tower.models.user import Identity
from tower.services.auth_service import AuthService
from tower.services.errors import Unauthorized
from tower.services.token_service import AccessVerifier

logger = structlog.get_logger(__name__)

# auto_error=False so a missing header is rendered by our own 401 handler
bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    """Return the AuthService wired into the application at startup."""
    return request.app.state.auth_service


def get_access_verifier(request: Request) -> AccessVerifier:
    return request.app.state.access_verifier


async def get_current_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    verifier: AccessVerifier = Depends(get_access_verifier),
) -> Identity:
    """Extract and validate the caller's identity from a Bearer access token.

    No store is consulted: the token's signature and expiry are the whole
    check. On success the identity is attached to ``request.state.identity``
    and bound into the logging context.

    Args:
        request: Incoming request
        credentials: Parsed Authorization header, None if absent or not Bearer
        verifier: Access-token verifier holding the signing secret

    Returns:
        Identity of the authenticated caller

    Raises:
        Unauthorized: If the header is missing, malformed, or the token is
            forged or expired
    """
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Authorization token required")

    identity = verifier.verify(credentials.credentials)

    request.state.identity = identity
    structlog.contextvars.bind_contextvars(user_id=str(identity.user_id))
    return identity
