"""
Domain models for OAuth credential persistence.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountCredential(BaseModel):
    """Stored Google token set and integration metadata for one account."""

    account_id: str = Field(..., description="Owning user identifier from the session layer.")
    access_token: Optional[str] = Field(
        None, description="Short-lived bearer token; absent when disconnected."
    )
    refresh_token: Optional[str] = Field(
        None, description="Long-lived token; absent means re-consent on expiry."
    )
    access_token_expires_at: Optional[datetime] = None
    scopes: Optional[str] = None
    selected_business_id: Optional[str] = Field(
        None, description="Chosen location resource name, e.g. accounts/1/locations/2."
    )
    selected_business_name: Optional[str] = None
    last_synced_at: Optional[datetime] = None
    external_email: Optional[str] = None
    external_name: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _expiry_accompanies_token(self) -> "AccountCredential":
        if self.access_token and self.access_token_expires_at is None:
            raise ValueError("access_token_expires_at is required when access_token is set")
        return self

    @property
    def is_connected(self) -> bool:
        return bool(self.access_token)

    @property
    def is_expired(self) -> bool:
        if self.access_token_expires_at is None:
            return True
        return self.access_token_expires_at <= utcnow()

    def needs_refresh(self, window: timedelta, *, now: Optional[datetime] = None) -> bool:
        """True when the access token expires within ``window`` of ``now``."""
        if self.access_token_expires_at is None:
            return True
        current = now or utcnow()
        return self.access_token_expires_at <= current + window


class AuthorizationTransaction(BaseModel):
    """Server-side record binding a ``state`` value to one consent flow."""

    state: str
    account_id: str
    redirect_to: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    def is_expired(self, ttl: timedelta, *, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) - self.created_at > ttl


class GoogleUserInfo(BaseModel):
    """Profile returned by the user-info endpoint."""

    email: Optional[str] = None
    name: Optional[str] = None


class TokenGrant(BaseModel):
    """Parsed token endpoint response."""

    access_token: str
    expires_in: int
    refresh_token: Optional[str] = None
    scope: Optional[str] = None

    def expires_at(self, issued_at: Optional[datetime] = None) -> datetime:
        return (issued_at or utcnow()) + timedelta(seconds=self.expires_in)


__all__ = [
    "AccountCredential",
    "AuthorizationTransaction",
    "GoogleUserInfo",
    "TokenGrant",
    "utcnow",
]
