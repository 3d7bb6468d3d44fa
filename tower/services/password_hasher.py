"""bcrypt password hashing."""

import bcrypt
import structlog

from tower.services.errors import HashingFailure

logger = structlog.get_logger(__name__)

DEFAULT_ROUNDS = 12

# bcrypt ignores input past 72 bytes; newer releases raise instead of truncating.
BCRYPT_MAX_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Salted, deliberately slow one-way password hashing.

    Args:
        rounds: bcrypt work factor (log2 of the iteration count)
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """Hash a password with a fresh salt.

        Args:
            password: Plain-text password to hash

        Returns:
            Bcrypt hash string

        Raises:
            HashingFailure: If bcrypt cannot produce a hash
        """
        try:
            salt = bcrypt.gensalt(rounds=self.rounds)
            hashed = bcrypt.hashpw(_encode(password), salt)
        except (ValueError, TypeError, MemoryError) as e:
            logger.error("password_hash_failed", error=str(e))
            raise HashingFailure(str(e)) from e
        return hashed.decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            password: Plain-text password to check
            password_hash: Bcrypt hash to verify against

        Returns:
            True if the password matches, False otherwise

        Raises:
            HashingFailure: If the stored hash is malformed
        """
        try:
            return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
        except (ValueError, TypeError, MemoryError) as e:
            logger.error("password_verify_failed", error=str(e))
            raise HashingFailure(str(e)) from e
