try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from reviewdesk.main import app
from reviewdesk.models.oauth import GoogleUserInfo, TokenGrant
from reviewdesk.models.reviews import review_record_id
from reviewdesk.services.oauth_flow import AuthorizationService
from reviewdesk.services.review_sync import ReviewSyncService

USER = {"X-User-Id": "u1"}


class DummyOAuthClient:
    def __init__(self) -> None:
        self.codes: list[str] = []

    def build_authorization_url(self, state: str) -> str:
        return f"https://oauth.example.com/auth?state={state}"

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        self.codes.append(code)
        return TokenGrant(access_token="ya29.access", refresh_token="1//refresh", expires_in=3600)

    async def fetch_user_info(self, access_token: str) -> GoogleUserInfo:
        return GoogleUserInfo(email="owner@example.com", name="Owner")


class DummyApiClient:
    def __init__(self) -> None:
        self.replies: list[tuple[str, str]] = []

    async def list_accounts(self, credential):
        return [{"name": "accounts/1", "accountName": "Bakery Group"}]

    async def list_locations(self, credential, account_name):
        return [{"name": "locations/2", "title": "Main Street Bakery"}]

    async def list_reviews(self, credential, location_name):
        return [
            {
                "name": f"{location_name}/reviews/r1",
                "reviewId": "r1",
                "starRating": "FIVE",
                "comment": "Lovely",
                "createTime": "2024-05-01T10:00:00Z",
            }
        ]

    async def update_reply(self, credential, review_name, comment):
        self.replies.append((review_name, comment))
        return {"comment": comment}


@pytest.fixture()
def overrides(token_store, review_store, oauth_settings):
    from reviewdesk import dependencies
    from reviewdesk.core.config import get_settings

    oauth_client = DummyOAuthClient()
    api_client = DummyApiClient()
    auth_service = AuthorizationService(token_store, oauth_client, oauth_settings)
    sync_service = ReviewSyncService(token_store, review_store, api_client)
    settings = get_settings().model_copy(update={"frontend_base_url": None})

    app.dependency_overrides.update(
        {
            dependencies.get_app_settings: lambda: settings,
            dependencies.get_token_store: lambda: token_store,
            dependencies.get_authorization_service: lambda: auth_service,
            dependencies.get_review_sync_service: lambda: sync_service,
        }
    )

    yield oauth_client, api_client, token_store

    app.dependency_overrides.clear()


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    )


async def _connect(client: httpx.AsyncClient) -> None:
    start = await client.get("/api/auth/google/authorize", headers=USER)
    state = start.json()["state"]
    response = await client.get(
        "/api/auth/google/callback", params={"state": state, "code": "oauth-code"}
    )
    assert response.status_code == 200


@pytest.mark.anyio
async def test_health(overrides) -> None:
    async with _http_client() as client:
        response = await client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


@pytest.mark.anyio
async def test_authorize_requires_identity(overrides) -> None:
    async with _http_client() as client:
        response = await client.get("/api/auth/google/authorize")

        assert response.status_code == 401
        assert response.json()["error"] == "unauthenticated"


@pytest.mark.anyio
async def test_authorize_returns_json_by_default(overrides) -> None:
    async with _http_client() as client:
        response = await client.get(
            "/api/auth/google/authorize", params={"redirect_to": "/settings"}, headers=USER
        )

        assert response.status_code == 200
        data = response.json()
        assert data["authorization_url"].startswith("https://oauth.example.com/auth")
        assert parse_qs(urlparse(data["authorization_url"]).query)["state"] == [data["state"]]
        assert data["expires_at"]


@pytest.mark.anyio
async def test_authorize_redirects_for_html_accept(overrides) -> None:
    async with _http_client() as client:
        response = await client.get(
            "/api/auth/google/authorize", headers={**USER, "accept": "text/html"}
        )

        assert response.status_code == 307
        assert response.headers["location"].startswith("https://oauth.example.com/auth")


@pytest.mark.anyio
async def test_callback_connects_account(overrides) -> None:
    async with _http_client() as client:
        oauth_client, _, token_store = overrides
        start = await client.get(
            "/api/auth/google/authorize", params={"redirect_to": "/reviews"}, headers=USER
        )
        state = start.json()["state"]

        response = await client.post(
            "/api/auth/google/callback", json={"state": state, "code": "oauth-code"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "status": "connected",
            "redirect_to": "/reviews",
            "external_email": "owner@example.com",
        }
        assert oauth_client.codes == ["oauth-code"]
        assert token_store.get_credential("u1").access_token == "ya29.access"


@pytest.mark.anyio
async def test_replayed_callback_is_rejected(overrides) -> None:
    async with _http_client() as client:
        oauth_client, _, _ = overrides
        start = await client.get("/api/auth/google/authorize", headers=USER)
        params = {"state": start.json()["state"], "code": "oauth-code"}

        first = await client.get("/api/auth/google/callback", params=params)
        second = await client.get("/api/auth/google/callback", params=params)

        assert first.status_code == 200
        assert second.status_code == 400
        body = second.json()
        assert body["error"] == "state_mismatch"
        assert body["reconnect_required"] is True
        assert oauth_client.codes == ["oauth-code"]


@pytest.mark.anyio
async def test_callback_reports_denied_consent(overrides) -> None:
    async with _http_client() as client:
        start = await client.get("/api/auth/google/authorize", headers=USER)

        response = await client.get(
            "/api/auth/google/callback",
            params={"state": start.json()["state"], "error": "access_denied"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "authorization_denied"


@pytest.mark.anyio
async def test_denied_consent_redirects_browsers_with_error(overrides) -> None:
    async with _http_client() as client:
        start = await client.get(
            "/api/auth/google/authorize",
            params={"redirect_to": "/settings?tab=google"},
            headers=USER,
        )

        response = await client.get(
            "/api/auth/google/callback",
            params={"state": start.json()["state"], "error": "access_denied"},
            headers={"accept": "text/html"},
        )

        assert response.status_code == 307
        location = urlparse(response.headers["location"])
        assert location.path == "/settings"
        assert parse_qs(location.query) == {"tab": ["google"], "error": ["access_denied"]}


@pytest.mark.anyio
async def test_wait_reports_pending_then_connected(overrides) -> None:
    async with _http_client() as client:
        start = await client.get("/api/auth/google/authorize", headers=USER)
        state = start.json()["state"]

        pending = await client.get("/api/auth/google/wait", params={"state": state, "timeout": 0})
        await client.get("/api/auth/google/callback", params={"state": state, "code": "c"})
        done = await client.get("/api/auth/google/wait", params={"state": state, "timeout": 1})

        assert pending.status_code == 202
        assert pending.json()["status"] == "pending"
        assert done.status_code == 200
        assert done.json()["status"] == "connected"


@pytest.mark.anyio
async def test_status_and_disconnect(overrides) -> None:
    async with _http_client() as client:
        before = await client.get("/api/integrations/google/status", headers=USER)
        await _connect(client)
        connected = await client.get("/api/integrations/google/status", headers=USER)
        await client.post("/api/integrations/google/disconnect", headers=USER)
        after = await client.get("/api/integrations/google/status", headers=USER)

        assert before.json()["connected"] is False
        assert connected.json()["connected"] is True
        assert connected.json()["external_email"] == "owner@example.com"
        assert after.json()["connected"] is False
        assert after.json()["reconnect_required"] is True


@pytest.mark.anyio
async def test_business_routes_require_connection(overrides) -> None:
    async with _http_client() as client:
        response = await client.get("/api/integrations/google/businesses", headers=USER)

        assert response.status_code == 401
        assert response.json()["error"] == "not_connected"
        assert response.json()["reconnect_required"] is True


@pytest.mark.anyio
async def test_sync_before_selection_conflicts(overrides) -> None:
    async with _http_client() as client:
        await _connect(client)

        response = await client.post("/api/integrations/google/reviews/sync", headers=USER)

        assert response.status_code == 409
        assert response.json()["error"] == "no_business_selected"


@pytest.mark.anyio
async def test_select_sync_list_and_reply(overrides) -> None:
    async with _http_client() as client:
        _, api_client, _ = overrides
        await _connect(client)

        businesses = await client.get("/api/integrations/google/businesses", headers=USER)
        business = businesses.json()["businesses"][0]
        selection = await client.put(
            "/api/integrations/google/business",
            json={"external_id": business["external_id"], "display_name": business["display_name"]},
            headers=USER,
        )
        sync = await client.post("/api/integrations/google/reviews/sync", headers=USER)
        reviews = await client.get("/api/integrations/google/reviews", headers=USER)
        record_id = review_record_id("r1")
        reply = await client.post(
            f"/api/integrations/google/reviews/{record_id}/reply",
            json={"text": "Thank you!"},
            headers=USER,
        )

        assert business["external_id"] == "accounts/1/locations/2"
        assert selection.json()["selected_business_id"] == "accounts/1/locations/2"
        assert sync.status_code == 200
        assert sync.json()["reviews_stored"] == 1
        assert [r["record_id"] for r in reviews.json()["reviews"]] == [record_id]
        assert reply.status_code == 200
        assert reply.json()["review"]["reply_comment"] == "Thank you!"
        assert api_client.replies == [("accounts/1/locations/2/reviews/r1", "Thank you!")]


@pytest.mark.anyio
async def test_reply_validation_and_missing_review(overrides) -> None:
    async with _http_client() as client:
        await _connect(client)

        empty = await client.post(
            "/api/integrations/google/reviews/abc/reply", json={"text": ""}, headers=USER
        )
        missing = await client.post(
            "/api/integrations/google/reviews/abc/reply", json={"text": "Thanks"}, headers=USER
        )

        assert empty.status_code == 422
        assert missing.status_code == 404
        assert missing.json()["error"] == "review_not_found"
