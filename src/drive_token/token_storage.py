"""
Token storage for Drive OAuth tokens.

This module provides file-based token persistence with expiry tracking.
Tokens are stored as plaintext JSON in the format Google's client libraries
write (``expiry_date`` in epoch milliseconds), so a headless consumer can
read the file directly.
"""

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from .exceptions import SchemaValidationError, StoreCorruptionError, TokenStorageError
from .schemas import validate_token

logger = logging.getLogger(__name__)


@dataclass
class TokenRecord:
    """
    Stored OAuth token data.

    Attributes:
        access_token: Short-lived access token for API calls
        refresh_token: Long-lived token for obtaining new access tokens;
                       without it the token cannot be used headless
        expiry_date: Access token expiry in epoch milliseconds
        scope: Granted OAuth scopes (space separated)
        token_type: Token type (typically "Bearer")
        id_token: OpenID Connect ID token, when the provider returns one
    """

    access_token: str
    refresh_token: Optional[str] = None
    expiry_date: Optional[int] = None
    scope: Optional[str] = None
    token_type: Optional[str] = None
    id_token: Optional[str] = None

    @property
    def is_headless(self) -> bool:
        """True if the token can be renewed without an operator."""
        return bool(self.refresh_token)

    @property
    def expires_at(self) -> Optional[datetime]:
        """
        Expiration datetime (timezone-aware UTC), or None if unknown.
        """
        if self.expiry_date is None:
            return None
        return datetime.fromtimestamp(self.expiry_date / 1000, tz=timezone.utc)

    @property
    def is_expired(self) -> bool:
        expires_at = self.expires_at
        return expires_at is not None and datetime.now(timezone.utc) >= expires_at

    def expires_within(self, seconds: int) -> bool:
        """
        Check if token expires within given seconds.

        A token without a known expiry is never considered expiring.

        Args:
            seconds: Number of seconds to check

        Returns:
            True if token will expire within the specified time, False otherwise
        """
        expires_at = self.expires_at
        if expires_at is None:
            return False
        buffer_time = datetime.now(timezone.utc) + timedelta(seconds=seconds)
        return buffer_time >= expires_at

    def to_dict(self) -> dict:
        """
        Convert to dictionary for JSON serialization.

        Returns:
            Dictionary of the fields that are set
        """
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict) -> "TokenRecord":
        """
        Create TokenRecord from parsed JSON.

        Args:
            data: Dictionary with token fields

        Returns:
            TokenRecord instance

        Raises:
            SchemaValidationError: If the data fails token validation
        """
        parsed = validate_token(data)
        expiry = parsed.expiry_date
        return cls(
            access_token=parsed.access_token,
            refresh_token=parsed.refresh_token,
            expiry_date=int(expiry) if expiry is not None else None,
            scope=parsed.scope,
            token_type=parsed.token_type,
            id_token=parsed.id_token,
        )


class TokenStorage:
    """
    File-based token storage (plaintext JSON).

    Writes replace the whole file atomically (temp file + rename), so a
    crash mid-write never leaves a half-written token behind.
    """

    def __init__(self, token_file: str):
        """
        Initialize token storage.

        Args:
            token_file: Path to token storage file (e.g., secrets/token.json)
        """
        self.token_file = Path(token_file)
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        """Create parent directory if needed."""
        parent = self.token_file.parent
        if not parent.exists():
            logger.info(f"{parent} folder does not exist, creating it")
            parent.mkdir(parents=True, exist_ok=True)

    def save(self, token: TokenRecord) -> None:
        """
        Save token to file.

        Writes the token as indented JSON with user-only permissions (600).

        Args:
            token: Token record to save

        Raises:
            TokenStorageError: If save operation fails (previous file is kept)
        """
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                dir=self.token_file.parent, prefix=f".{self.token_file.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(token.to_dict(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.token_file)
            logger.info(f"Token successfully stored in {self.token_file}")
        except (IOError, OSError) as e:
            if tmp_path is not None:
                Path(tmp_path).unlink(missing_ok=True)
            logger.error(f"Failed to save token: {e}")
            raise TokenStorageError(f"Failed to save token: {e}") from e

    def load(self) -> Optional[TokenRecord]:
        """
        Load token from file.

        Returns:
            TokenRecord if the file exists and is valid, None if absent

        Raises:
            StoreCorruptionError: If the file is not JSON or fails validation
            TokenStorageError: If the file exists but cannot be read
        """
        if not self.token_file.exists():
            logger.debug(f"No token file found at {self.token_file}")
            return None

        try:
            with open(self.token_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StoreCorruptionError(f"Token file {self.token_file} is not valid JSON: {e}") from e
        except (IOError, OSError) as e:
            raise TokenStorageError(f"Could not read token file: {e}") from e

        try:
            token = TokenRecord.from_dict(data)
        except SchemaValidationError as e:
            raise StoreCorruptionError(str(e)) from e

        logger.debug(f"Token loaded from {self.token_file}")
        return token
