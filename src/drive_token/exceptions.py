"""
Exception classes for Drive token provisioning.

This module defines the exception hierarchy for every failure the token
tool can report. Each class carries the process exit code the CLI maps
it to, so callers can tell configuration problems from transient ones.
"""

from typing import List, Optional

EXIT_OK = 0
EXIT_CONFIGURATION = 1
EXIT_CAPABILITY = 2
EXIT_EXCHANGE = 3
EXIT_STORAGE = 4
EXIT_UNDETERMINED = 75  # EX_TEMPFAIL: retry later


class DriveTokenError(Exception):
    """Base exception for all Drive token errors."""

    exit_code = EXIT_CONFIGURATION


class ConfigurationError(DriveTokenError):
    """Application identity or tool configuration is missing or invalid."""

    exit_code = EXIT_CONFIGURATION


class CredentialsNotFoundError(ConfigurationError):
    """Application identity (client secrets) file does not exist."""

    pass


class SchemaValidationError(DriveTokenError):
    """
    Parsed JSON does not match the expected structure.

    Attributes:
        errors: One formatted line per failed check
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = list(errors or [])
        if self.errors:
            message = message + ":\n" + "\n".join(f"- {e}" for e in self.errors)
        super().__init__(message)


class StoreCorruptionError(DriveTokenError):
    """Stored token file cannot be parsed or fails schema validation."""

    pass


class CapabilityError(DriveTokenError):
    """Stored token is valid but cannot be renewed without an operator."""

    exit_code = EXIT_CAPABILITY


class AuthorizationError(DriveTokenError):
    """Interactive authorization did not yield a code."""

    exit_code = EXIT_EXCHANGE


class TokenExchangeError(DriveTokenError):
    """Failed to exchange authorization code for tokens."""

    exit_code = EXIT_EXCHANGE


class TokenRefreshError(DriveTokenError):
    """Failed to refresh access token using refresh token."""

    exit_code = EXIT_UNDETERMINED


class TokenStorageError(DriveTokenError):
    """Token storage operation failed (file I/O error)."""

    exit_code = EXIT_STORAGE
