"""Authentication API endpoints."""

from fastapi import APIRouter, Depends, status

from tower.api.dependencies import get_auth_service, get_current_identity
from tower.models.auth import (
    IdentityResponse,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    TokenPairResponse,
)
from tower.models.user import Identity, IssuedTokens
from tower.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])


def _token_pair(auth_service: AuthService, tokens: IssuedTokens) -> TokenPairResponse:
    """Convert issued tokens to the public response shape."""
    return TokenPairResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_type="bearer",
        expires_in=int(auth_service.issuer.access_ttl.total_seconds()),
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenPairResponse:
    """Create an account and return its first token pair.

    Raises:
        400 invalid_input, 400 duplicate_username, 500 internal_fault
    """
    tokens = await auth_service.register(request.username, request.password)
    return _token_pair(auth_service, tokens)


@router.post("/login")
async def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenPairResponse:
    """Login with username and password.

    Each successful login opens an independent session.

    Raises:
        400 invalid_input, 401 invalid_credentials, 500 internal_fault
    """
    tokens = await auth_service.login(request.username, request.password)
    return _token_pair(auth_service, tokens)


@router.post("/refresh")
async def refresh(
    request: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenPairResponse:
    """Exchange a refresh token for a new pair.

    Performs token rotation: the presented refresh token stops working as
    soon as the new pair is issued.

    Raises:
        401 invalid_refresh_token, 401 expired_refresh_token, 500 internal_fault
    """
    tokens = await auth_service.refresh(request.refresh_token)
    return _token_pair(auth_service, tokens)


@router.post("/logout")
async def logout(
    request: LogoutRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Revoke a refresh token. Succeeds for unknown tokens too."""
    await auth_service.logout(request.refresh_token)
    return MessageResponse(message="Logged out successfully")


@router.get("/me")
async def get_me(identity: Identity = Depends(get_current_identity)) -> IdentityResponse:
    """Return the identity carried by the caller's access token."""
    return IdentityResponse(user_id=identity.user_id, username=identity.username)
