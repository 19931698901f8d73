"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from reviewdesk.clients import (
    BusinessProfileClient,
    DynamoDBStore,
    GoogleOAuthClient,
    SQLiteStore,
)
from reviewdesk.core.config import get_settings
from reviewdesk.core.errors import ConfigurationError
from reviewdesk.services import (
    AuthorizationService,
    ReviewStore,
    ReviewSyncService,
    TokenCipherService,
    TokenRefresher,
    TokenStore,
)
from reviewdesk.services.token_store import RecordStore


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_record_store() -> RecordStore:
    """Provide the configured record store backend."""
    storage = _settings().storage
    if storage.backend == "dynamodb":
        return DynamoDBStore(storage)
    return SQLiteStore(storage.sqlite_path)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.google.client_secret
    if not secret:
        raise ConfigurationError(
            "Set TOKEN_ENCRYPTION_SECRET (or GOOGLE_CLIENT_SECRET) to store tokens."
        )
    return TokenCipherService(
        secret=secret,
        previous_secrets=settings.security.previous_token_encryption_secrets,
    )


@lru_cache()
def get_token_store() -> TokenStore:
    return TokenStore(get_record_store(), get_token_cipher_service())


@lru_cache()
def get_review_store() -> ReviewStore:
    return ReviewStore(get_record_store())


@lru_cache()
def get_google_oauth_client() -> GoogleOAuthClient:
    """Create a singleton Google OAuth client."""
    settings = _settings()
    return GoogleOAuthClient(settings.google, settings.oauth)


@lru_cache()
def get_token_refresher() -> TokenRefresher:
    """Provide the process-wide refresher so single-flight spans all requests."""
    return TokenRefresher(get_token_store(), get_google_oauth_client(), _settings().oauth)


@lru_cache()
def get_business_profile_client() -> BusinessProfileClient:
    return BusinessProfileClient(get_token_refresher(), _settings().google)


@lru_cache()
def get_authorization_service() -> AuthorizationService:
    """Provide the consent flow service; it owns the in-process waiters."""
    return AuthorizationService(
        get_token_store(), get_google_oauth_client(), _settings().oauth
    )


@lru_cache()
def get_review_sync_service() -> ReviewSyncService:
    return ReviewSyncService(
        get_token_store(), get_review_store(), get_business_profile_client()
    )


__all__ = [
    "get_authorization_service",
    "get_business_profile_client",
    "get_google_oauth_client",
    "get_record_store",
    "get_review_store",
    "get_review_sync_service",
    "get_token_cipher_service",
    "get_token_refresher",
    "get_token_store",
]
