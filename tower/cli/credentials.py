"""Local credential file for the CLI (owner read/write only)."""

import json
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import structlog
from pydantic import BaseModel, ValidationError

logger = structlog.get_logger(__name__)

FILE_MODE = 0o600
DIR_MODE = 0o700
ACCESS_TOKEN_LIFETIME = timedelta(minutes=15)


def default_auth_path() -> Path:
    return Path.home() / ".tower" / ".auth" / "tokens.json"


class StoredAuth(BaseModel):
    """Contents of the credential file."""

    access_token: str
    refresh_token: str
    username: str
    expires_at: datetime


class CredentialFile:
    """Reads and writes the CLI's token file.

    A missing or unreadable file is treated as "not logged in" rather than
    an error.

    Args:
        path: File location; defaults to ~/.tower/.auth/tokens.json
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = path or default_auth_path()

    def load(self) -> Optional[StoredAuth]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("credential_file_unreadable", path=str(self.path), error=str(e))
            return None

        try:
            return StoredAuth.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError):
            logger.warning("credential_file_corrupt", path=str(self.path))
            return None

    def save(
        self,
        access_token: str,
        refresh_token: str,
        username: str,
        now: Optional[datetime] = None,
    ) -> StoredAuth:
        """Write a token pair, creating the directory if needed.

        The directory and file are re-chmodded to 0700 and 0600 in case
        they already existed with looser permissions.
        """
        now = now or datetime.now(timezone.utc)
        auth = StoredAuth(
            access_token=access_token,
            refresh_token=refresh_token,
            username=username,
            expires_at=now + ACCESS_TOKEN_LIFETIME,
        )

        self.path.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        os.chmod(self.path.parent, DIR_MODE)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(auth.model_dump_json(indent=2))
        os.chmod(self.path, FILE_MODE)

        return auth

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def is_logged_in(self, now: Optional[datetime] = None) -> bool:
        """True if a stored access token exists and has not expired."""
        auth = self.load()
        if auth is None:
            return False
        return auth.expires_at > (now or datetime.now(timezone.utc))

    def current_user(self) -> Optional[str]:
        auth = self.load()
        return auth.username if auth else None
