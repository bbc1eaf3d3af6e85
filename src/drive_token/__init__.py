"""
Headless Google Drive OAuth token provisioning.

This package keeps a long-lived, read-only Drive token on disk for an
unattended process. After a one-time interactive authorization every run
reuses, refreshes or (when the token is missing or corrupt) re-issues it.

Public API:
    DriveTokenConfig: Tool configuration
    ApplicationIdentity: Registered OAuth client
    CredentialStore: Client secrets loading
    TokenRecord: Token data structure
    TokenStorage: File-based token persistence
    DriveOAuthClient: OAuth2 client adapter
    ConsoleAuthorizer: Operator prompt for the authorization code
    CredentialStateMachine: Token state resolution and transitions

Exceptions:
    DriveTokenError: Base exception
    ConfigurationError: Client secrets or configuration error
    CredentialsNotFoundError: Client secrets file missing
    SchemaValidationError: JSON structure mismatch
    StoreCorruptionError: Stored token unreadable as a token
    CapabilityError: Stored token has no refresh token
    AuthorizationError: Operator did not supply a code
    TokenExchangeError: Code exchange failed
    TokenRefreshError: Refresh failed
    TokenStorageError: Storage operation failed
"""

from .authorizer import ConsoleAuthorizer
from .config import DRIVE_READONLY_SCOPE, DriveTokenConfig
from .credential_store import ApplicationIdentity, CredentialStore
from .exceptions import (
    AuthorizationError,
    CapabilityError,
    ConfigurationError,
    CredentialsNotFoundError,
    DriveTokenError,
    SchemaValidationError,
    StoreCorruptionError,
    TokenExchangeError,
    TokenRefreshError,
    TokenStorageError,
)
from .oauth_client import DriveOAuthClient
from .state_machine import CredentialStateMachine, Outcome, ResolutionResult, TokenState
from .token_storage import TokenRecord, TokenStorage

__all__ = [
    # Configuration
    "DRIVE_READONLY_SCOPE",
    "DriveTokenConfig",
    # Stores
    "ApplicationIdentity",
    "CredentialStore",
    "TokenRecord",
    "TokenStorage",
    # OAuth
    "DriveOAuthClient",
    "ConsoleAuthorizer",
    # State machine
    "CredentialStateMachine",
    "TokenState",
    "Outcome",
    "ResolutionResult",
    # Exceptions
    "DriveTokenError",
    "ConfigurationError",
    "CredentialsNotFoundError",
    "SchemaValidationError",
    "StoreCorruptionError",
    "CapabilityError",
    "AuthorizationError",
    "TokenExchangeError",
    "TokenRefreshError",
    "TokenStorageError",
]
