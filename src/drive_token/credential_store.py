"""
Application identity loading.

The identity is the registered OAuth client (id, secret, redirect URI) read
from the client secrets file downloaded from the Google Cloud console. Every
problem with it is a configuration error: the operator has to fix the file.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError, CredentialsNotFoundError, SchemaValidationError
from .schemas import validate_credentials

logger = logging.getLogger(__name__)

DEFAULT_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"


@dataclass(frozen=True)
class ApplicationIdentity:
    """
    Registered OAuth client for an installed application.

    Attributes:
        client_id: OAuth client ID
        client_secret: OAuth client secret
        redirect_uri: First configured redirect URI
        project_id: Cloud project the client belongs to
        auth_uri: Authorization endpoint
        token_uri: Token endpoint
        auth_provider_x509_cert_url: Provider certificate URL
    """

    client_id: str
    client_secret: str
    redirect_uri: str
    project_id: Optional[str] = None
    auth_uri: Optional[str] = None
    token_uri: Optional[str] = None
    auth_provider_x509_cert_url: Optional[str] = None

    @property
    def effective_token_uri(self) -> str:
        return self.token_uri or DEFAULT_TOKEN_URI

    def to_client_config(self) -> Dict[str, Any]:
        """
        Build the client config mapping expected by google-auth-oauthlib.

        Returns:
            {"installed": {...}} with optional metadata passed through
        """
        installed = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uris": [self.redirect_uri],
            "auth_uri": self.auth_uri or DEFAULT_AUTH_URI,
            "token_uri": self.effective_token_uri,
        }
        if self.project_id:
            installed["project_id"] = self.project_id
        if self.auth_provider_x509_cert_url:
            installed["auth_provider_x509_cert_url"] = self.auth_provider_x509_cert_url
        return {"installed": installed}


class CredentialStore:
    """Reads the client secrets file into an ApplicationIdentity."""

    def __init__(self, credentials_file: str):
        self.credentials_file = Path(credentials_file)

    def load(self) -> ApplicationIdentity:
        """
        Load and validate the application identity.

        Returns:
            ApplicationIdentity

        Raises:
            CredentialsNotFoundError: If the file does not exist
            ConfigurationError: If the file is unreadable, not JSON, fails
                                validation, or has no redirect URI
        """
        if not self.credentials_file.exists():
            raise CredentialsNotFoundError(
                f"{self.credentials_file} file does not exist. Download the OAuth "
                f"client secrets for a desktop application and save them there."
            )

        try:
            with open(self.credentials_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ConfigurationError(f"Invalid credentials file {self.credentials_file}: {e}") from e
        except (IOError, OSError) as e:
            raise ConfigurationError(f"Could not read credentials file: {e}") from e

        try:
            installed = validate_credentials(data).installed
        except SchemaValidationError as e:
            raise ConfigurationError(str(e)) from e

        redirect_uri = (installed.redirect_uris or [None])[0]
        if not redirect_uri:
            raise ConfigurationError("No redirect URI found in credentials")

        logger.debug(f"Loaded OAuth client {installed.client_id} from {self.credentials_file}")
        return ApplicationIdentity(
            client_id=installed.client_id,
            client_secret=installed.client_secret,
            redirect_uri=redirect_uri,
            project_id=installed.project_id,
            auth_uri=installed.auth_uri,
            token_uri=installed.token_uri,
            auth_provider_x509_cert_url=installed.auth_provider_x509_cert_url,
        )
