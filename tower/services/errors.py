"""Error taxonomy for the authentication core.

``AuthError`` subclasses are the only exceptions that cross the service
boundary; each carries the HTTP status and machine-readable reason the API
layer renders. The remaining exceptions are raised by stores, the hasher and
the issuer, and are translated by ``AuthService`` before they reach a caller.
"""


class AuthError(Exception):
    """Base class for client-visible authentication failures."""

    status_code: int = 500
    reason: str = "internal_fault"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(AuthError):
    status_code = 400
    reason = "invalid_input"
    default_message = "Invalid input"


class DuplicateUsername(AuthError):
    status_code = 400
    reason = "duplicate_username"
    default_message = "Username already exists"


class InvalidCredentials(AuthError):
    """Unknown username or wrong password; deliberately indistinguishable."""

    status_code = 401
    reason = "invalid_credentials"
    default_message = "Invalid credentials"


class InvalidRefreshToken(AuthError):
    status_code = 401
    reason = "invalid_refresh_token"
    default_message = "Invalid refresh token"


class ExpiredRefreshToken(InvalidRefreshToken):
    reason = "expired_refresh_token"
    default_message = "Refresh token expired"


class Unauthorized(AuthError):
    """Missing, malformed, forged or expired access token."""

    status_code = 401
    reason = "unauthorized"
    default_message = "Invalid or expired access token"


class InternalFault(AuthError):
    pass


# ---------------------------------------------------------------------------
# Infrastructure faults (never rendered directly)
# ---------------------------------------------------------------------------


class StoreUnavailable(Exception):
    """A credential or session store could not complete an operation."""


class UsernameTaken(Exception):
    """The credential store's uniqueness constraint rejected an insert."""


class HashingFailure(Exception):
    """The password hasher failed; distinct from a mismatched password."""


class TokenSigningError(Exception):
    """The access token could not be signed."""
