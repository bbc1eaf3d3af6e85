"""Tests for credential state resolution and transitions."""

import json

import pytest

from drive_token.credential_store import CredentialStore
from drive_token.exceptions import (
    CapabilityError,
    ConfigurationError,
    CredentialsNotFoundError,
    TokenExchangeError,
    TokenRefreshError,
)
from drive_token.state_machine import CredentialStateMachine, Outcome, TokenState
from drive_token.token_storage import TokenRecord, TokenStorage

AUTH_URL = "https://accounts.google.com/o/oauth2/auth?access_type=offline&prompt=consent"


class FakeClient:
    """Stands in for DriveOAuthClient and records every call."""

    def __init__(self, exchange_result=None, refresh_result=None, refresh_error=None, exchange_error=None):
        self.exchange_result = exchange_result
        self.refresh_result = refresh_result
        self.refresh_error = refresh_error
        self.exchange_error = exchange_error
        self.calls = []
        self.last_refresh_used_network = False

    def build_authorization_url(self):
        self.calls.append(("build_authorization_url",))
        return AUTH_URL

    def exchange_code(self, code):
        self.calls.append(("exchange_code", code))
        if self.exchange_error:
            raise self.exchange_error
        return self.exchange_result

    def refresh(self, token, force=False):
        self.calls.append(("refresh", token, force))
        if self.refresh_error:
            raise self.refresh_error
        self.last_refresh_used_network = True
        return self.refresh_result


class FakeAuthorizer:
    def __init__(self, code="4/code"):
        self.code = code
        self.urls = []

    def prompt_for_code(self, url):
        self.urls.append(url)
        return self.code


@pytest.fixture
def client():
    return FakeClient(
        exchange_result=TokenRecord(access_token="a1", refresh_token="r1", token_type="Bearer"),
    )


@pytest.fixture
def authorizer():
    return FakeAuthorizer()


@pytest.fixture
def make_machine(credentials_file, token_file, authorizer):
    """Build a state machine around a fake client."""
    identities = []

    def build(client):
        def factory(identity):
            identities.append(identity)
            return client

        machine = CredentialStateMachine(
            CredentialStore(str(credentials_file)),
            TokenStorage(str(token_file)),
            client_factory=factory,
            authorizer=authorizer,
        )
        machine.identities = identities
        return machine

    return build


def write_token(token_file, data):
    token_file.write_text(json.dumps(data) if not isinstance(data, str) else data)


def read_token(token_file):
    return json.loads(token_file.read_text())


class TestResolveState:
    """Tests for state classification."""

    def test_no_stored_token(self, make_machine, client):
        state, token = make_machine(client).resolve_state()

        assert state is TokenState.NO_STORED_TOKEN
        assert token is None

    def test_invalid_json_is_malformed(self, make_machine, client, token_file):
        write_token(token_file, "{ not json")

        state, token = make_machine(client).resolve_state()

        assert state is TokenState.STORED_TOKEN_MALFORMED
        assert token is None

    def test_schema_failure_is_malformed(self, make_machine, client, token_file):
        write_token(token_file, {"refresh_token": "r1"})

        state, _ = make_machine(client).resolve_state()

        assert state is TokenState.STORED_TOKEN_MALFORMED

    @pytest.mark.parametrize("data", [{"access_token": "a1"}, {"access_token": "a1", "refresh_token": ""}, {"access_token": "a1", "refresh_token": None}])
    def test_no_refresh_token_is_not_headless(self, make_machine, client, token_file, data):
        write_token(token_file, data)

        state, token = make_machine(client).resolve_state()

        assert state is TokenState.STORED_TOKEN_NOT_HEADLESS
        assert token.access_token == "a1"

    def test_refreshable(self, make_machine, client, token_file):
        write_token(token_file, {"access_token": "a1", "refresh_token": "r1"})

        state, token = make_machine(client).resolve_state()

        assert state is TokenState.STORED_TOKEN_REFRESHABLE
        assert token.refresh_token == "r1"

    def test_resolution_makes_no_client_calls(self, make_machine, client, token_file):
        write_token(token_file, {"access_token": "a1", "refresh_token": "r1"})
        machine = make_machine(client)

        machine.resolve_state()

        assert client.calls == []
        assert machine.identities == []


class TestInteractiveAuthorization:
    """Tests for the NO_STORED_TOKEN / STORED_TOKEN_MALFORMED transitions."""

    def test_no_token_runs_authorization_and_saves(self, make_machine, client, authorizer, token_file):
        """No token file: authorize, persist a refresh-capable token."""
        result = make_machine(client).run()

        assert result.state is TokenState.NO_STORED_TOKEN
        assert result.outcome is Outcome.AUTHORIZED
        assert result.succeeded is True
        assert authorizer.urls == [AUTH_URL]
        assert client.calls == [("build_authorization_url",), ("exchange_code", "4/code")]
        assert read_token(token_file) == {"access_token": "a1", "refresh_token": "r1", "token_type": "Bearer"}

    def test_invalid_json_resolves_like_missing_file(self, make_machine, client, authorizer, token_file):
        write_token(token_file, "{ this is not json")

        result = make_machine(client).run()

        assert result.state is TokenState.STORED_TOKEN_MALFORMED
        assert result.outcome is Outcome.AUTHORIZED
        assert client.calls == [("build_authorization_url",), ("exchange_code", "4/code")]
        assert read_token(token_file)["refresh_token"] == "r1"

    def test_schema_failure_resolves_like_missing_file(self, make_machine, client, token_file):
        """Valid JSON failing the schema triggers authorization, unlike a non-headless token."""
        write_token(token_file, {"access_token": ["not", "a", "string"], "refresh_token": "r0"})

        result = make_machine(client).run()

        assert result.outcome is Outcome.AUTHORIZED
        assert read_token(token_file)["access_token"] == "a1"

    def test_undecodable_bytes_resolve_like_missing_file(self, make_machine, client, token_file):
        token_file.write_bytes(b"\xff\xfe{bad")

        result = make_machine(client).run()

        assert result.state is TokenState.STORED_TOKEN_MALFORMED
        assert result.outcome is Outcome.AUTHORIZED
        assert read_token(token_file)["refresh_token"] == "r1"

    @pytest.mark.parametrize("expiry", ["NaN", "Infinity", "1e300"])
    def test_unusable_expiry_resolves_like_missing_file(self, make_machine, client, token_file, expiry):
        token_file.write_text('{"access_token": "a0", "refresh_token": "r0", "expiry_date": ' + expiry + "}")

        result = make_machine(client).run()

        assert result.state is TokenState.STORED_TOKEN_MALFORMED
        assert result.outcome is Outcome.AUTHORIZED
        assert client.calls == [("build_authorization_url",), ("exchange_code", "4/code")]

    def test_every_authorization_uses_the_client_url(self, make_machine, client, authorizer, token_file):
        make_machine(client).run()
        write_token(token_file, "corrupt")
        make_machine(client).run()

        assert authorizer.urls == [AUTH_URL, AUTH_URL]

    def test_exchange_failure_is_fatal_and_writes_nothing(self, make_machine, token_file):
        client = FakeClient(exchange_error=TokenExchangeError("invalid_grant"))

        with pytest.raises(TokenExchangeError):
            make_machine(client).run()

        assert not token_file.exists()

    def test_client_configured_with_loaded_identity(self, make_machine, client):
        machine = make_machine(client)
        machine.run()

        assert machine.identities[0].client_id == "test-client-id.apps.googleusercontent.com"
        assert machine.identities[0].redirect_uri == "http://localhost"


class TestNotHeadless:
    """Tests for the STORED_TOKEN_NOT_HEADLESS transition."""

    def test_fatal_without_network_or_write(self, make_machine, client, authorizer, token_file):
        """A token without refresh_token is never silently re-authorized."""
        write_token(token_file, {"access_token": "a1"})
        before = token_file.read_text()

        with pytest.raises(CapabilityError, match="prompt=consent"):
            make_machine(client).run()

        assert client.calls == []
        assert authorizer.urls == []
        assert token_file.read_text() == before


class TestRefresh:
    """Tests for the STORED_TOKEN_REFRESHABLE transition."""

    def test_refresh_merges_and_keeps_refresh_token(self, make_machine, token_file, past_expiry, future_expiry):
        """Refresh response without refresh_token keeps the stored one."""
        write_token(token_file, {"access_token": "a1", "refresh_token": "r1", "expiry_date": past_expiry})
        client = FakeClient(refresh_result=TokenRecord(access_token="a2", expiry_date=future_expiry))

        result = make_machine(client).run()

        assert result.outcome is Outcome.REFRESHED
        assert read_token(token_file) == {
            "access_token": "a2",
            "refresh_token": "r1",
            "expiry_date": future_expiry,
        }
        assert result.token.refresh_token == "r1"

    def test_refresh_passes_stored_token_and_force_flag(self, make_machine, token_file):
        write_token(token_file, {"access_token": "a1", "refresh_token": "r1"})
        client = FakeClient(refresh_result=TokenRecord(access_token="a2", refresh_token="r1"))

        make_machine(client).run(force_refresh=True)

        name, token, force = client.calls[0]
        assert name == "refresh"
        assert token == TokenRecord(access_token="a1", refresh_token="r1")
        assert force is True

    def test_reused_when_no_network_call(self, make_machine, token_file, future_expiry):
        stored = {"access_token": "a1", "refresh_token": "r1", "expiry_date": future_expiry}
        write_token(token_file, stored)

        class ValidTokenClient(FakeClient):
            def refresh(self, token, force=False):
                self.calls.append(("refresh", token, force))
                return TokenRecord(**token.to_dict())

        result = make_machine(ValidTokenClient()).run()

        assert result.outcome is Outcome.REUSED
        assert read_token(token_file) == stored

    def test_runs_twice_without_operator(self, make_machine, authorizer, token_file, future_expiry):
        """Repeated runs with a valid refresh token never prompt."""
        write_token(token_file, {"access_token": "a1", "refresh_token": "r1"})
        client = FakeClient(refresh_result=TokenRecord(access_token="a2", expiry_date=future_expiry))

        first = make_machine(client).run()
        second = make_machine(client).run()

        assert first.succeeded and second.succeeded
        assert authorizer.urls == []
        assert read_token(token_file)["refresh_token"] == "r1"

    def test_refresh_error_is_undetermined(self, make_machine, authorizer, token_file):
        stored = {"access_token": "a1", "refresh_token": "r1"}
        write_token(token_file, stored)
        client = FakeClient(refresh_error=TokenRefreshError("invalid_grant"))

        result = make_machine(client).run()

        assert result.outcome is Outcome.UNDETERMINED
        assert result.succeeded is False
        assert "invalid_grant" in result.detail
        assert read_token(token_file) == stored
        assert authorizer.urls == []

    def test_refresh_without_token_is_undetermined(self, make_machine, token_file):
        write_token(token_file, {"access_token": "a1", "refresh_token": "r1"})
        client = FakeClient(refresh_result=None)

        result = make_machine(client).run()

        assert result.outcome is Outcome.UNDETERMINED
        assert result.detail == "Refresh did not return an access token"


class TestIdentityFailures:
    """Application identity problems are fatal before any state is resolved."""

    def test_missing_credentials_file(self, make_machine, client, credentials_file):
        credentials_file.unlink()

        with pytest.raises(CredentialsNotFoundError):
            make_machine(client).run()

        assert client.calls == []

    def test_missing_redirect_uri(self, make_machine, client, credentials_file, credentials_data):
        credentials_data["installed"]["redirect_uris"] = []
        credentials_file.write_text(json.dumps(credentials_data))

        with pytest.raises(ConfigurationError, match="No redirect URI"):
            make_machine(client).run()
