"""Service layer exports."""

from .oauth_flow import (
    AuthorizationOutcome,
    AuthorizationResult,
    AuthorizationService,
    AuthorizationStart,
    AuthorizationWaiters,
)
from .review_store import ReviewStore
from .review_sync import ConnectionStatus, ReviewSyncService, SyncResult
from .token_cipher import TokenCipherService
from .token_refresher import TokenRefresher
from .token_store import TokenStore

__all__ = [
    "AuthorizationOutcome",
    "AuthorizationResult",
    "AuthorizationService",
    "AuthorizationStart",
    "AuthorizationWaiters",
    "ConnectionStatus",
    "ReviewStore",
    "ReviewSyncService",
    "SyncResult",
    "TokenCipherService",
    "TokenRefresher",
    "TokenStore",
]
