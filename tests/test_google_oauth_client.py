try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from reviewdesk.clients.google_auth import GoogleOAuthClient
from reviewdesk.core.config import GoogleSettings, OAuthSettings
from reviewdesk.core.errors import (
    ConfigurationError,
    ReauthorizationRequiredError,
    TokenExchangeError,
    TokenRefreshError,
)


class RecordingHandler:
    """Serve queued responses and remember every request."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    def form(self, index: int = 0) -> dict[str, list[str]]:
        return parse_qs(self.requests[index].content.decode())


def _client(google_settings, oauth_settings, handler) -> GoogleOAuthClient:
    return GoogleOAuthClient(
        google_settings, oauth_settings, transport=httpx.MockTransport(handler)
    )


def test_authorization_url_requests_offline_consent(google_settings, oauth_settings) -> None:
    client = GoogleOAuthClient(google_settings, oauth_settings)

    url = client.build_authorization_url("state-123")

    parsed = urlparse(url)
    params = parse_qs(parsed.query)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == GoogleOAuthClient.AUTH_BASE_URL
    assert params["client_id"] == ["test-client-id"]
    assert params["redirect_uri"] == ["https://example.com/oauth/callback"]
    assert params["response_type"] == ["code"]
    assert params["state"] == ["state-123"]
    assert params["access_type"] == ["offline"]
    assert params["prompt"] == ["consent"]
    assert params["scope"][0].split() == [
        "https://www.googleapis.com/auth/business.manage",
        "openid",
        "email",
        "profile",
    ]


def test_scope_list_ignores_environment(google_settings, monkeypatch) -> None:
    monkeypatch.setenv("OAUTH_SCOPES", "openid")

    url = GoogleOAuthClient(google_settings, OAuthSettings()).build_authorization_url("s")

    scopes = parse_qs(urlparse(url).query)["scope"][0].split()
    assert "https://www.googleapis.com/auth/business.manage" in scopes


def test_authorization_url_requires_client_id(oauth_settings) -> None:
    client = GoogleOAuthClient(GoogleSettings(client_id=""), oauth_settings)

    with pytest.raises(ConfigurationError):
        client.build_authorization_url("state")


@pytest.mark.anyio
async def test_exchange_authorization_code_returns_grant(google_settings, oauth_settings) -> None:
    handler = RecordingHandler(
        httpx.Response(
            200,
            json={
                "access_token": "ya29.access",
                "refresh_token": "1//refresh",
                "expires_in": 3599,
                "scope": "openid email",
            },
        )
    )

    grant = await _client(google_settings, oauth_settings, handler).exchange_authorization_code(
        "abc123"
    )

    assert grant.access_token == "ya29.access"
    assert grant.refresh_token == "1//refresh"
    assert grant.expires_in == 3599
    form = handler.form()
    assert form["grant_type"] == ["authorization_code"]
    assert form["code"] == ["abc123"]
    assert form["client_secret"] == ["test-client-secret"]
    assert str(handler.requests[0].url) == GoogleOAuthClient.TOKEN_URL


@pytest.mark.anyio
async def test_exchange_failure_is_not_retried(google_settings, oauth_settings) -> None:
    handler = RecordingHandler(
        httpx.Response(400, json={"error": "invalid_grant", "error_description": "Bad code"}),
        httpx.Response(200, json={"access_token": "never", "expires_in": 3600}),
    )

    with pytest.raises(TokenExchangeError) as excinfo:
        await _client(google_settings, oauth_settings, handler).exchange_authorization_code(
            "used-code"
        )

    assert len(handler.requests) == 1
    assert excinfo.value.details["error"] == "invalid_grant"
    assert excinfo.value.reconnect_required is True


@pytest.mark.anyio
async def test_exchange_rejects_incomplete_payload(google_settings, oauth_settings) -> None:
    handler = RecordingHandler(httpx.Response(200, json={"token_type": "Bearer"}))

    with pytest.raises(TokenExchangeError):
        await _client(google_settings, oauth_settings, handler).exchange_authorization_code("c")


@pytest.mark.anyio
async def test_exchange_requires_client_secret(oauth_settings) -> None:
    handler = RecordingHandler()
    settings = GoogleSettings(client_id="id", client_secret="")

    with pytest.raises(ConfigurationError):
        await _client(settings, oauth_settings, handler).exchange_authorization_code("c")
    assert handler.requests == []


@pytest.mark.anyio
async def test_refresh_retries_once_after_server_error(google_settings, oauth_settings) -> None:
    handler = RecordingHandler(
        httpx.Response(503, json={"error": "backend_error"}),
        httpx.Response(200, json={"access_token": "ya29.new", "expires_in": 3600}),
    )

    grant = await _client(google_settings, oauth_settings, handler).refresh_access_token(
        "1//refresh"
    )

    assert grant.access_token == "ya29.new"
    assert grant.refresh_token is None
    assert len(handler.requests) == 2
    assert handler.form(1)["grant_type"] == ["refresh_token"]


@pytest.mark.anyio
async def test_refresh_gives_up_after_second_failure(google_settings, oauth_settings) -> None:
    handler = RecordingHandler(
        httpx.Response(500, json={"error": "backend_error"}),
        httpx.Response(500, json={"error": "backend_error"}),
        httpx.Response(200, json={"access_token": "never", "expires_in": 3600}),
    )

    with pytest.raises(TokenRefreshError):
        await _client(google_settings, oauth_settings, handler).refresh_access_token("1//r")

    assert len(handler.requests) == 2


@pytest.mark.anyio
async def test_refresh_invalid_grant_requires_reauthorization(
    google_settings, oauth_settings
) -> None:
    handler = RecordingHandler(
        httpx.Response(400, json={"error": "invalid_grant", "error_description": "Token revoked"}),
    )

    with pytest.raises(ReauthorizationRequiredError):
        await _client(google_settings, oauth_settings, handler).refresh_access_token("1//r")

    assert len(handler.requests) == 1


@pytest.mark.anyio
async def test_fetch_user_info_sends_bearer_token(google_settings, oauth_settings) -> None:
    handler = RecordingHandler(
        httpx.Response(200, json={"email": "owner@example.com", "name": "Owner"})
    )

    info = await _client(google_settings, oauth_settings, handler).fetch_user_info("ya29.a")

    assert info.email == "owner@example.com"
    assert info.name == "Owner"
    assert handler.requests[0].headers["Authorization"] == "Bearer ya29.a"


@pytest.mark.anyio
async def test_fetch_user_info_rejects_non_object_payload(
    google_settings, oauth_settings
) -> None:
    handler = RecordingHandler(httpx.Response(200, json=["unexpected"]))

    with pytest.raises(ValueError):
        await _client(google_settings, oauth_settings, handler).fetch_user_info("ya29.a")
