"""
Command line entry point for Drive token provisioning.

Run once interactively to authorize, then unattended (cron, CI, container
start-up) to keep the token fresh:

    drive-token                      # reuse, refresh or authorize
    drive-token --status             # report state, no network, no writes
    drive-token --force-refresh      # renew the access token now

Exit codes:
    0   valid token available
    1   configuration error (client secrets missing/invalid, no redirect URI)
    2   stored token has no refresh token (re-authorize with forced consent)
    3   authorization or code exchange failed
    4   token file could not be read or written
    75  refresh failed for a transient reason; retry later
"""

import argparse
import logging
import sys
from functools import partial
from typing import List, Optional

from .authorizer import ConsoleAuthorizer
from .config import DriveTokenConfig
from .credential_store import CredentialStore
from .exceptions import (
    EXIT_CAPABILITY,
    EXIT_CONFIGURATION,
    EXIT_OK,
    EXIT_UNDETERMINED,
    CapabilityError,
    DriveTokenError,
)
from .oauth_client import DriveOAuthClient
from .state_machine import CredentialStateMachine, TokenState
from .token_storage import TokenStorage

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="drive-token",
        description="Provision and refresh a headless read-only Google Drive OAuth token",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment variables:
  DRIVE_TOKEN_SECRETS_DIR             directory with credentials.json and token.json
  DRIVE_TOKEN_CREDENTIALS_FILE        client secrets file
  DRIVE_TOKEN_FILE                    token file
  DRIVE_TOKEN_REFRESH_BUFFER_SECONDS  refresh this many seconds before expiry
  DRIVE_TOKEN_MAX_RETRIES             retries on network errors during refresh
        """,
    )
    parser.add_argument("--secrets-dir", help="Directory holding credentials.json and token.json")
    parser.add_argument("--credentials", help="Path to the OAuth client secrets file")
    parser.add_argument("--token", help="Path to the token file")
    parser.add_argument(
        "--status",
        action="store_true",
        help="Report the stored token state without refreshing or authorizing",
    )
    parser.add_argument(
        "--force-refresh",
        action="store_true",
        help="Refresh the access token even if it is still valid",
    )
    parser.add_argument(
        "--open-browser",
        action="store_true",
        help="Open the authorization URL in a browser",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def build_state_machine(config: DriveTokenConfig, authorizer=None) -> CredentialStateMachine:
    """
    Wire the default collaborators for a configuration.

    Args:
        config: Tool configuration
        authorizer: Code prompt (console prompt on stdin/stdout if not provided)

    Returns:
        CredentialStateMachine
    """
    client_factory = partial(
        DriveOAuthClient,
        scopes=config.scopes,
        refresh_buffer_seconds=config.refresh_buffer_seconds,
        max_retries=config.max_retries,
    )
    return CredentialStateMachine(
        credential_store=CredentialStore(config.credentials_file),
        token_storage=TokenStorage(config.token_file),
        client_factory=client_factory,
        authorizer=authorizer or ConsoleAuthorizer(),
    )


def report_status(machine: CredentialStateMachine) -> int:
    """
    Print the stored token state.

    Returns:
        0 if refreshable, 2 if not headless, 75 if absent or malformed
    """
    state, token = machine.resolve_state()
    print(f"Token file:  {machine.token_storage.token_file}")
    print(f"State:       {state.value}")

    if token is not None:
        expires_at = token.expires_at
        if expires_at is None:
            print("Expires at:  unknown")
        else:
            suffix = " (expired)" if token.is_expired else ""
            print(f"Expires at:  {expires_at.isoformat()}{suffix}")
        print(f"Scope:       {token.scope or 'N/A'}")

    if state is TokenState.STORED_TOKEN_REFRESHABLE:
        return EXIT_OK
    if state is TokenState.STORED_TOKEN_NOT_HEADLESS:
        print("Token has no refresh_token. Re-authorize with prompt=consent.")
        return EXIT_CAPABILITY
    print("No usable token stored. Run drive-token to authorize.")
    return EXIT_UNDETERMINED


def main(argv: Optional[List[str]] = None, authorizer=None) -> int:
    """
    Main entry point.

    Args:
        argv: Command line arguments (sys.argv[1:] if not provided)
        authorizer: Code prompt override

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        config = DriveTokenConfig.from_env(
            secrets_dir=args.secrets_dir,
            credentials_file=args.credentials,
            token_file=args.token,
        )
        if authorizer is None:
            authorizer = ConsoleAuthorizer(open_browser=args.open_browser)
        machine = build_state_machine(config, authorizer)

        if args.status:
            return report_status(machine)

        result = machine.run(force_refresh=args.force_refresh)

    except CapabilityError as e:
        logger.error(f"Token unusable for headless operation: {e}")
        return e.exit_code
    except DriveTokenError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return e.exit_code
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return 130
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return EXIT_CONFIGURATION

    if not result.succeeded:
        logger.error(f"Token state undetermined, retry later: {result.detail}")
        return EXIT_UNDETERMINED

    logger.info(f"Valid token available ({result.outcome.value})")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
