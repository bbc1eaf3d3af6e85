"""
Credential state resolution for headless Drive access.

Each run classifies the stored token into one of four states and drives
the matching transition:

    NO_STORED_TOKEN            -> interactive authorization -> save
    STORED_TOKEN_MALFORMED     -> interactive authorization -> save
    STORED_TOKEN_NOT_HEADLESS  -> CapabilityError (never re-authorizes silently)
    STORED_TOKEN_REFRESHABLE   -> refresh -> save, or UNDETERMINED on failure

Classification happens before any network call.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

from .credential_store import ApplicationIdentity, CredentialStore
from .exceptions import CapabilityError, StoreCorruptionError, TokenRefreshError
from .token_storage import TokenRecord, TokenStorage

logger = logging.getLogger(__name__)


class TokenState(Enum):
    NO_STORED_TOKEN = "no_stored_token"
    STORED_TOKEN_MALFORMED = "stored_token_malformed"
    STORED_TOKEN_NOT_HEADLESS = "stored_token_not_headless"
    STORED_TOKEN_REFRESHABLE = "stored_token_refreshable"


class Outcome(Enum):
    AUTHORIZED = "authorized"  # new token from interactive authorization
    REFRESHED = "refreshed"  # access token renewed over the network
    REUSED = "reused"  # stored access token still valid
    UNDETERMINED = "undetermined"  # refresh failed; retry later


@dataclass
class ResolutionResult:
    """
    Terminal outcome of one run.

    Attributes:
        state: State the stored token was classified into
        outcome: Transition result
        token: Token now on disk (None when undetermined)
        detail: Human-readable reason, set when undetermined
    """

    state: TokenState
    outcome: Outcome
    token: Optional[TokenRecord] = None
    detail: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is not Outcome.UNDETERMINED


class CredentialStateMachine:
    """
    Decides what to do with the stored token and does it.

    Example:
        machine = CredentialStateMachine(
            CredentialStore("secrets/credentials.json"),
            TokenStorage("secrets/token.json"),
            client_factory=DriveOAuthClient,
            authorizer=ConsoleAuthorizer(),
        )
        result = machine.run()
    """

    def __init__(
        self,
        credential_store: CredentialStore,
        token_storage: TokenStorage,
        client_factory: Callable[[ApplicationIdentity], object],
        authorizer,
    ):
        """
        Args:
            credential_store: Source of the application identity
            token_storage: Token file store
            client_factory: Builds an OAuth2 client adapter for an identity
            authorizer: Collects the authorization code from an operator
        """
        self.credential_store = credential_store
        self.token_storage = token_storage
        self.client_factory = client_factory
        self.authorizer = authorizer

    def resolve_state(self) -> Tuple[TokenState, Optional[TokenRecord]]:
        """
        Classify the stored token without touching the network.

        Returns:
            (state, token) where token is None unless it parsed and validated

        Raises:
            TokenStorageError: If the token file exists but cannot be read
        """
        try:
            token = self.token_storage.load()
        except StoreCorruptionError as e:
            logger.warning(f"Invalid token, will need re-authorization: {e}")
            return TokenState.STORED_TOKEN_MALFORMED, None

        if token is None:
            logger.info("No stored token found")
            return TokenState.NO_STORED_TOKEN, None

        if not token.is_headless:
            return TokenState.STORED_TOKEN_NOT_HEADLESS, token

        return TokenState.STORED_TOKEN_REFRESHABLE, token

    def run(self, force_refresh: bool = False) -> ResolutionResult:
        """
        Make sure a headless-usable token is on disk.

        Args:
            force_refresh: Refresh even if the stored access token is valid

        Returns:
            ResolutionResult (outcome UNDETERMINED if a refresh failed)

        Raises:
            ConfigurationError: If the application identity is unusable
            CapabilityError: If the stored token has no refresh token
            AuthorizationError: If the operator did not supply a code
            TokenExchangeError: If the code exchange failed
            TokenStorageError: If the token file cannot be read or written
        """
        identity = self.credential_store.load()
        state, token = self.resolve_state()
        logger.debug(f"Token state: {state.value}")

        if state in (TokenState.NO_STORED_TOKEN, TokenState.STORED_TOKEN_MALFORMED):
            return self._authorize(identity, state)

        if state is TokenState.STORED_TOKEN_NOT_HEADLESS:
            raise CapabilityError(
                "Token has no refresh_token. Re-authorize with prompt=consent "
                f"(remove {self.token_storage.token_file} and run again)."
            )

        return self._refresh(identity, state, token, force_refresh)

    def _authorize(self, identity: ApplicationIdentity, state: TokenState) -> ResolutionResult:
        client = self.client_factory(identity)
        url = client.build_authorization_url()
        code = self.authorizer.prompt_for_code(url)
        token = client.exchange_code(code)
        self.token_storage.save(token)
        logger.info("Authorization complete")
        return ResolutionResult(state=state, outcome=Outcome.AUTHORIZED, token=token)

    def _refresh(
        self,
        identity: ApplicationIdentity,
        state: TokenState,
        token: TokenRecord,
        force: bool,
    ) -> ResolutionResult:
        client = self.client_factory(identity)
        try:
            refreshed = client.refresh(token, force=force)
        except TokenRefreshError as e:
            logger.error(f"Token refresh failed: {e}")
            return ResolutionResult(state=state, outcome=Outcome.UNDETERMINED, detail=str(e))

        if refreshed is None or not refreshed.access_token:
            detail = "Refresh did not return an access token"
            logger.error(detail)
            return ResolutionResult(state=state, outcome=Outcome.UNDETERMINED, detail=detail)

        # Never trust the refresh response to carry the refresh token
        refreshed.refresh_token = token.refresh_token
        self.token_storage.save(refreshed)

        used_network = getattr(client, "last_refresh_used_network", True)
        outcome = Outcome.REFRESHED if used_network else Outcome.REUSED
        return ResolutionResult(state=state, outcome=outcome, token=refreshed)
