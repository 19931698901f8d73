"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_authorization_service,
    get_business_profile_client,
    get_google_oauth_client,
    get_record_store,
    get_review_store,
    get_review_sync_service,
    get_token_cipher_service,
    get_token_refresher,
    get_token_store,
)
from .config import get_app_settings, get_current_account_id

__all__ = [
    "get_app_settings",
    "get_authorization_service",
    "get_business_profile_client",
    "get_current_account_id",
    "get_google_oauth_client",
    "get_record_store",
    "get_review_store",
    "get_review_sync_service",
    "get_token_cipher_service",
    "get_token_refresher",
    "get_token_store",
]
