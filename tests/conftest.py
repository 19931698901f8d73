"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import timedelta
from typing import Optional

import pytest

from reviewdesk.clients.sqlite_store import SQLiteStore
from reviewdesk.core.config import GoogleSettings, OAuthSettings
from reviewdesk.models.oauth import AccountCredential, utcnow
from reviewdesk.services.review_store import ReviewStore
from reviewdesk.services.token_cipher import TokenCipherService
from reviewdesk.services.token_store import TokenStore


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "reviewdesk.db")


@pytest.fixture
def record_store(db_path) -> SQLiteStore:
    return SQLiteStore(db_path)


@pytest.fixture
def token_store(record_store) -> TokenStore:
    return TokenStore(record_store, TokenCipherService(secret="test-secret"))


@pytest.fixture
def review_store(record_store) -> ReviewStore:
    return ReviewStore(record_store)


@pytest.fixture
def google_settings() -> GoogleSettings:
    return GoogleSettings(
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri="https://example.com/oauth/callback",
    )


@pytest.fixture
def oauth_settings() -> OAuthSettings:
    return OAuthSettings(refresh_retry_backoff_seconds=0)


@pytest.fixture
def make_credential():
    """Build a connected credential expiring ``expires_in`` seconds from now."""

    def _make(
        account_id: str = "u1",
        *,
        access_token: str = "token-1",
        refresh_token: Optional[str] = "refresh-1",
        expires_in: int = 3600,
        **extra,
    ) -> AccountCredential:
        return AccountCredential(
            account_id=account_id,
            access_token=access_token,
            refresh_token=refresh_token,
            access_token_expires_at=utcnow() + timedelta(seconds=expires_in),
            **extra,
        )

    return _make
