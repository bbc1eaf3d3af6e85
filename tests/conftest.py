"""Shared fixtures for Drive token tests."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from drive_token.credential_store import ApplicationIdentity


@pytest.fixture
def credentials_data():
    """Client secrets file content for an installed application."""
    return {
        "installed": {
            "client_id": "test-client-id.apps.googleusercontent.com",
            "project_id": "test-project",
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "auth_provider_x509_cert_url": "https://www.googleapis.com/oauth2/v1/certs",
            "client_secret": "test-client-secret",
            "redirect_uris": ["http://localhost"],
        }
    }


@pytest.fixture
def secrets_dir(tmp_path):
    """Temporary secrets directory."""
    path = tmp_path / "secrets"
    path.mkdir()
    return path


@pytest.fixture
def credentials_file(secrets_dir, credentials_data):
    """Client secrets file written to the secrets directory."""
    path = secrets_dir / "credentials.json"
    path.write_text(json.dumps(credentials_data), encoding="utf-8")
    return path


@pytest.fixture
def token_file(secrets_dir):
    """Token file path (not created)."""
    return secrets_dir / "token.json"


@pytest.fixture
def identity():
    """Application identity matching credentials_data."""
    return ApplicationIdentity(
        client_id="test-client-id.apps.googleusercontent.com",
        client_secret="test-client-secret",
        redirect_uri="http://localhost",
        project_id="test-project",
        auth_uri="https://accounts.google.com/o/oauth2/auth",
        token_uri="https://oauth2.googleapis.com/token",
    )


@pytest.fixture
def future_expiry():
    """Expiry one hour from now, in epoch milliseconds."""
    return int((datetime.now(timezone.utc) + timedelta(hours=1)).timestamp() * 1000)


@pytest.fixture
def past_expiry():
    """Expiry one hour ago, in epoch milliseconds."""
    return int((datetime.now(timezone.utc) - timedelta(hours=1)).timestamp() * 1000)
