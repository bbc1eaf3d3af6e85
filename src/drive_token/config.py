"""
Configuration for Drive token provisioning.

File locations and refresh tuning can be loaded from environment
variables or provided programmatically. The permission scope is fixed:
the tool only ever requests read-only Drive access.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from .exceptions import ConfigurationError

DRIVE_READONLY_SCOPE = "https://www.googleapis.com/auth/drive.readonly"

DEFAULT_SECRETS_DIR = "secrets"
CREDENTIALS_FILENAME = "credentials.json"
TOKEN_FILENAME = "token.json"


@dataclass
class DriveTokenConfig:
    """
    Configuration for the Drive token tool.

    Attributes:
        secrets_dir: Directory holding the client secrets and token files
        credentials_file: Path to the installed-app client secrets file
                          (default: <secrets_dir>/credentials.json)
        token_file: Path to the token file (default: <secrets_dir>/token.json)
        refresh_buffer_seconds: Refresh access tokens this many seconds before expiry
        max_retries: Retries for transient network errors during refresh
        scopes: OAuth scopes requested during authorization
    """

    secrets_dir: str = DEFAULT_SECRETS_DIR
    credentials_file: Optional[str] = None
    token_file: Optional[str] = None

    refresh_buffer_seconds: int = 300  # Refresh 5 min before expiry
    max_retries: int = 3

    scopes: Tuple[str, ...] = (DRIVE_READONLY_SCOPE,)

    def __post_init__(self) -> None:
        """Fill derived paths and validate configuration."""
        if not self.secrets_dir:
            raise ConfigurationError("secrets_dir cannot be empty")

        if not self.credentials_file:
            self.credentials_file = str(Path(self.secrets_dir) / CREDENTIALS_FILENAME)

        if not self.token_file:
            self.token_file = str(Path(self.secrets_dir) / TOKEN_FILENAME)

        if self.refresh_buffer_seconds < 0:
            raise ConfigurationError("refresh_buffer_seconds cannot be negative")

        if self.max_retries < 0:
            raise ConfigurationError("max_retries cannot be negative")

        if tuple(self.scopes) != (DRIVE_READONLY_SCOPE,):
            raise ConfigurationError(
                f"Only the read-only Drive scope is supported, got {list(self.scopes)}"
            )

    @classmethod
    def from_env(cls, **overrides) -> "DriveTokenConfig":
        """
        Load configuration from environment variables.

        Optional environment variables:
            DRIVE_TOKEN_SECRETS_DIR: Secrets directory (default: secrets)
            DRIVE_TOKEN_CREDENTIALS_FILE: Client secrets file path
            DRIVE_TOKEN_FILE: Token file path
            DRIVE_TOKEN_REFRESH_BUFFER_SECONDS: Eager refresh window (default: 300)
            DRIVE_TOKEN_MAX_RETRIES: Refresh retries on network errors (default: 3)

        Args:
            **overrides: Values that take precedence over the environment
                         (None values are ignored)

        Returns:
            DriveTokenConfig instance

        Raises:
            ConfigurationError: If a numeric variable is not an integer
        """
        values = {
            "secrets_dir": os.environ.get("DRIVE_TOKEN_SECRETS_DIR", DEFAULT_SECRETS_DIR),
            "credentials_file": os.environ.get("DRIVE_TOKEN_CREDENTIALS_FILE"),
            "token_file": os.environ.get("DRIVE_TOKEN_FILE"),
            "refresh_buffer_seconds": _int_from_env(
                "DRIVE_TOKEN_REFRESH_BUFFER_SECONDS", 300
            ),
            "max_retries": _int_from_env("DRIVE_TOKEN_MAX_RETRIES", 3),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
