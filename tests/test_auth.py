"""Tests for the login handshake against the identity service."""

from unittest.mock import MagicMock

import httpx
import pytest

from clouddb import auth, exceptions, session, transport


@pytest.fixture
def state() -> session.SessionState:
    return session.SessionState(
        username="user",
        api_key="secret",
        region="ord",
        auth_url=auth.AUTH_USA,
    )


@pytest.fixture
def authenticator(http_transport: transport.HttpxTransport) -> auth.Authenticator:
    return auth.Authenticator(http_transport)


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("field", "kwargs"),
    [
        ("username", {"username": None, "api_key": "k", "region": "dfw"}),
        ("api_key", {"username": "u", "api_key": "", "region": "dfw"}),
        ("region", {"username": "u", "api_key": "k", "region": None}),
    ],
)
def test_missing_credential_fails_before_network(field, kwargs):
    """A missing credential raises ConfigurationError without sending anything."""
    mock_transport = MagicMock(spec=transport.HttpxTransport)
    state = session.SessionState(auth_url=auth.AUTH_USA, **kwargs)

    with pytest.raises(exceptions.ConfigurationError, match=field) as exc_info:
        auth.Authenticator(mock_transport).authenticate(state)

    assert exc_info.value.field == field
    mock_transport.send.assert_not_called()


# ---------------------------------------------------------------------------
# Successful login
# ---------------------------------------------------------------------------


def test_authenticate_sends_credential_headers(authenticator, state, fake_api):
    authenticator.authenticate(state)

    request = fake_api.requests[0]
    assert request.method == "GET"
    assert str(request.url) == auth.AUTH_USA
    assert request.headers["X-Auth-User"] == "user"
    assert request.headers["X-Auth-Key"] == "secret"


def test_authenticate_populates_session(authenticator, state):
    authenticator.authenticate(state)

    assert state.authenticated
    assert state.snapshot().token == "token-1"
    assert state.endpoint == session.ServiceEndpoint(
        host="ord.databases.api.rackspacecloud.com",
        path="/v1.0/123456",
        port=443,
        scheme="https",
    )


def test_authenticate_uses_servicenet_host(http_transport, fake_api):
    state = session.SessionState(
        username="user",
        api_key="secret",
        region="lon",
        auth_url=auth.AUTH_UK,
        servicenet=True,
    )
    auth.Authenticator(http_transport).authenticate(state)

    assert state.endpoint.host == "snet-lon.databases.api.rackspacecloud.com"
    assert fake_api.requests[0].url.host == "lon.auth.api.rackspacecloud.com"


def test_authenticate_overwrites_token_each_call(authenticator, state):
    authenticator.authenticate(state)
    authenticator.authenticate(state)

    assert state.snapshot().token == "token-2"
    assert state.version == 2


# ---------------------------------------------------------------------------
# Rejected or malformed login
# ---------------------------------------------------------------------------


def test_rejected_credentials_raise_authentication_failed(authenticator, state, fake_api):
    fake_api.auth_status = 401

    with pytest.raises(exceptions.AuthenticationFailed, match="401") as exc_info:
        authenticator.authenticate(state)

    assert exc_info.value.status_code == 401
    assert not state.authenticated


def test_missing_token_header_raises(authenticator, state, fake_api):
    fake_api.auth_headers = {"X-Server-Management-Url": "https://x/v1.0/1"}

    with pytest.raises(exceptions.AuthenticationFailed, match="token"):
        authenticator.authenticate(state)


def test_unparsable_management_url_raises(authenticator, state, fake_api):
    fake_api.auth_headers = {
        "X-Auth-Token": "tok",
        "X-Server-Management-Url": "https://servers.example/v1.0/not-an-account",
    }

    with pytest.raises(exceptions.AuthenticationFailed, match="account"):
        authenticator.authenticate(state)
    assert not state.authenticated


def test_transport_error_is_wrapped():
    """Network failures talking to the identity service surface as AuthenticationFailed."""

    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    authenticator = auth.Authenticator(
        transport.HttpxTransport(transport=httpx.MockTransport(handler)),
    )
    state = session.SessionState("u", "k", "dfw", auth.AUTH_USA)

    with pytest.raises(exceptions.AuthenticationFailed) as exc_info:
        authenticator.authenticate(state)
    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


# ---------------------------------------------------------------------------
# refresh
# ---------------------------------------------------------------------------


def test_refresh_reauthenticates_when_version_is_current(authenticator, state, fake_api):
    authenticator.authenticate(state)
    stale = state.version
    state.invalidate(stale)

    authenticator.refresh(state, stale)

    assert fake_api.auth_count == 2
    assert state.snapshot().token == "token-2"


def test_refresh_skips_when_token_already_replaced(authenticator, state, fake_api):
    """A caller holding an old version reuses the token someone else fetched."""
    authenticator.authenticate(state)
    stale = state.version
    state.invalidate(stale)
    authenticator.refresh(state, stale)

    authenticator.refresh(state, stale)

    assert fake_api.auth_count == 2
