"""Schemas related to OAuth flows."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class OAuthCallbackPayload(BaseModel):
    """Payload sent to complete the OAuth callback exchange."""

    code: str = Field(..., description="Authorization code returned by Google OAuth.")
    state: str = Field(..., description="Opaque state token issued when starting OAuth.")


class AuthorizationStartResponse(BaseModel):
    authorization_url: str
    state: str
    expires_at: datetime


class AuthorizationCallbackResponse(BaseModel):
    status: str = "connected"
    redirect_to: Optional[str] = None
    external_email: Optional[str] = None


class AuthorizationWaitResponse(BaseModel):
    """Outcome of a consent flow as seen by the window that opened it."""

    status: str = Field(..., description="connected, failed or pending.")
    redirect_to: Optional[str] = None
    error: Optional[str] = None


class ConnectionStatusResponse(BaseModel):
    connected: bool
    token_expired: bool
    reconnect_required: bool
    external_email: Optional[str] = None
    selected_business_id: Optional[str] = None
    selected_business_name: Optional[str] = None
    last_synced_at: Optional[datetime] = None


__all__ = [
    "AuthorizationCallbackResponse",
    "AuthorizationStartResponse",
    "AuthorizationWaitResponse",
    "ConnectionStatusResponse",
    "OAuthCallbackPayload",
]
