"""Public schema exports."""

from .auth import (
    AuthorizationCallbackResponse,
    AuthorizationStartResponse,
    AuthorizationWaitResponse,
    ConnectionStatusResponse,
    OAuthCallbackPayload,
)
from .reviews import (
    BusinessListResponse,
    BusinessSelectionRequest,
    BusinessSelectionResponse,
    ReplyRequest,
    ReplyResponse,
    ReviewListResponse,
    SyncResponse,
)

__all__ = [
    "AuthorizationCallbackResponse",
    "AuthorizationStartResponse",
    "AuthorizationWaitResponse",
    "BusinessListResponse",
    "BusinessSelectionRequest",
    "BusinessSelectionResponse",
    "ConnectionStatusResponse",
    "OAuthCallbackPayload",
    "ReplyRequest",
    "ReplyResponse",
    "ReviewListResponse",
    "SyncResponse",
]
