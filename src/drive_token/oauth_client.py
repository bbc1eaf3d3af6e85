"""
OAuth2 client adapter for Google Drive.

This module wraps the standard Google OAuth2 client libraries behind the
three operations the token tool needs:
- Build an authorization URL (offline access, forced consent)
- Exchange an authorization code for a token
- Refresh an access token using the stored refresh token
"""

import logging
import math
import time
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence

import requests
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error

from .config import DRIVE_READONLY_SCOPE
from .credential_store import ApplicationIdentity
from .exceptions import (
    CapabilityError,
    SchemaValidationError,
    TokenExchangeError,
    TokenRefreshError,
)
from .token_storage import TokenRecord

logger = logging.getLogger(__name__)


class DriveOAuthClient:
    """
    OAuth2 client configured with one application identity.

    The same instance must be used to build the authorization URL and to
    exchange the resulting code, since the PKCE verifier lives on the flow.
    """

    def __init__(
        self,
        identity: ApplicationIdentity,
        scopes: Sequence[str] = (DRIVE_READONLY_SCOPE,),
        refresh_buffer_seconds: int = 300,
        max_retries: int = 3,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            identity: Registered OAuth client
            scopes: Scopes requested during authorization
            refresh_buffer_seconds: Refresh when the access token expires this soon
            max_retries: Retries for transient network errors during refresh
            session: HTTP session for refresh requests (creates one if not provided)
        """
        self.identity = identity
        self.scopes = list(scopes)
        self.refresh_buffer_seconds = refresh_buffer_seconds
        self.max_retries = max_retries
        self._request = Request(session=session)
        self._flow: Optional[Flow] = None
        self.last_refresh_used_network = False

    def _get_flow(self) -> Flow:
        if self._flow is None:
            self._flow = Flow.from_client_config(
                self.identity.to_client_config(),
                scopes=self.scopes,
                redirect_uri=self.identity.redirect_uri,
            )
        return self._flow

    def build_authorization_url(self) -> str:
        """
        Generate the URL the operator visits to grant access.

        Offline access and forced consent are always requested, so the
        provider issues a refresh token even on repeat authorizations.

        Returns:
            Authorization URL
        """
        url, _state = self._get_flow().authorization_url(
            access_type="offline",
            prompt="consent",
        )
        return url

    def exchange_code(self, code: str) -> TokenRecord:
        """
        Exchange authorization code for a token.

        Args:
            code: One-time code supplied by the operator

        Returns:
            Validated TokenRecord

        Raises:
            TokenExchangeError: If the provider rejects the code, the network
                                fails, the response is malformed, or the
                                read-only Drive scope was not granted
        """
        logger.info("Exchanging authorization code for token")

        try:
            response = self._get_flow().fetch_token(code=code)
        except OAuth2Error as e:
            raise TokenExchangeError(f"Error retrieving access token: {e.description or e.error}") from e
        except requests.RequestException as e:
            raise TokenExchangeError(f"Network error during token exchange: {e}") from e
        except Warning as e:
            # oauthlib raises a bare Warning when the granted scope differs
            response = self._check_granted_scope(e)

        try:
            token = TokenRecord.from_dict(_token_fields(response))
        except SchemaValidationError as e:
            raise TokenExchangeError(f"Token endpoint returned a malformed token. {e}") from e

        if not token.is_headless:
            logger.warning(
                "Token response has no refresh_token; it will not be usable headless"
            )
        return token

    def _check_granted_scope(self, warning: Warning) -> Mapping[str, Any]:
        """
        Accept a scope-changed token response only if every requested scope
        was still granted.

        Args:
            warning: Scope change warning raised by oauthlib

        Returns:
            The token response carried by the warning

        Raises:
            TokenExchangeError: If a requested scope is missing
        """
        response = getattr(warning, "token", None)
        granted = getattr(warning, "new_scope", None) or []
        if isinstance(granted, str):
            granted = granted.split()
        missing = [scope for scope in self.scopes if scope not in granted]
        if response is None or missing:
            raise TokenExchangeError(
                f"Read-only Drive access was not granted ({warning}). "
                f"Authorize again and allow access to Google Drive."
            ) from warning
        logger.warning(f"Granted scopes differ from requested: {warning}")
        return response

    def refresh(self, token: TokenRecord, force: bool = False) -> Optional[TokenRecord]:
        """
        Return a token with a fresh access token.

        The stored token is returned unchanged, without a network call, while
        its access token is not about to expire (unless force is set).
        Refreshed tokens always keep the original refresh token.

        Args:
            token: Stored token with a refresh token
            force: Refresh even if the access token is still valid

        Returns:
            Updated TokenRecord, or None if no access token was issued

        Raises:
            CapabilityError: If the token has no refresh token
            TokenRefreshError: If the provider rejects the refresh or the
                               network keeps failing
        """
        self.last_refresh_used_network = False
        if not token.is_headless:
            raise CapabilityError("Token has no refresh_token and cannot be refreshed")

        if not force and not token.expires_within(self.refresh_buffer_seconds):
            logger.info("Access token still valid, no refresh needed")
            return TokenRecord(**token.to_dict())

        credentials = self._credentials_for(token)
        self._refresh_with_retry(credentials)
        self.last_refresh_used_network = True

        if not credentials.token:
            logger.warning("Refresh returned no access token")
            return None

        granted = credentials.granted_scopes
        logger.info("Token refreshed")
        return TokenRecord(
            access_token=credentials.token,
            refresh_token=token.refresh_token,
            expiry_date=_epoch_millis(credentials.expiry),
            scope=" ".join(granted) if granted else token.scope,
            token_type=token.token_type or "Bearer",
            id_token=credentials.id_token or token.id_token,
        )

    def _credentials_for(self, token: TokenRecord) -> Credentials:
        expires_at = token.expires_at
        return Credentials(
            token=token.access_token,
            refresh_token=token.refresh_token,
            id_token=token.id_token,
            token_uri=self.identity.effective_token_uri,
            client_id=self.identity.client_id,
            client_secret=self.identity.client_secret,
            scopes=token.scope.split() if token.scope else None,
            # google-auth compares against naive UTC datetimes
            expiry=expires_at.replace(tzinfo=None) if expires_at else None,
        )

    def _refresh_with_retry(self, credentials: Credentials) -> None:
        """Refresh with exponential backoff on network errors (1s, 2s, 4s)."""
        for attempt in range(self.max_retries + 1):
            logger.info(f"Refreshing access token (attempt {attempt + 1}/{self.max_retries + 1})")
            try:
                credentials.refresh(self._request)
                return
            except RefreshError as e:
                raise TokenRefreshError(
                    f"Token refresh rejected: {e}. "
                    f"The refresh token may have been revoked or expired."
                ) from e
            except TransportError as e:
                if attempt >= self.max_retries:
                    raise TokenRefreshError(
                        f"Network error during token refresh after "
                        f"{self.max_retries + 1} attempts: {e}"
                    ) from e
                delay = 2 ** attempt
                logger.warning(f"Network error during token refresh, retrying after {delay}s: {e}")
                time.sleep(delay)


def _token_fields(response: Mapping[str, Any]) -> dict:
    """Map an oauthlib token response onto the stored token layout."""
    scope = response.get("scope")
    if isinstance(scope, (list, tuple)):
        scope = " ".join(scope)

    expiry_date = response.get("expires_at")
    if (
        isinstance(expiry_date, (int, float))
        and not isinstance(expiry_date, bool)
        and math.isfinite(expiry_date)
    ):
        expiry_date = int(expiry_date * 1000)

    return {
        "access_token": response.get("access_token"),
        "refresh_token": response.get("refresh_token"),
        "expiry_date": expiry_date,
        "scope": scope,
        "token_type": response.get("token_type"),
        "id_token": response.get("id_token"),
    }


def _epoch_millis(expiry: Optional[datetime]) -> Optional[int]:
    if expiry is None:
        return None
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return int(expiry.timestamp() * 1000)
