"""
Google OAuth utilities.

These helpers talk to Google's authorization, token and user-info endpoints.
They never touch storage; persisting what they return is the caller's job.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from reviewdesk.core.config import GoogleSettings, OAuthSettings
from reviewdesk.core.errors import (
    ConfigurationError,
    ReauthorizationRequiredError,
    TokenExchangeError,
    TokenRefreshError,
)
from reviewdesk.models.oauth import GoogleUserInfo, TokenGrant
from reviewdesk.utils.http import RetryConfig, request_with_retry

logger = logging.getLogger(__name__)


def _error_summary(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        body = {"error": response.text[:200]}
    if not isinstance(body, dict):
        body = {"error": str(body)[:200]}
    return {
        "status": response.status_code,
        "error": body.get("error"),
        "error_description": body.get("error_description"),
    }


def _is_invalid_grant(response: httpx.Response) -> bool:
    return response.status_code == 400 and _error_summary(response).get("error") == "invalid_grant"


class GoogleOAuthClient:
    """Build Google authorization URLs, exchange codes and refresh tokens."""

    SCOPES = (
        "https://www.googleapis.com/auth/business.manage",
        "openid",
        "email",
        "profile",
    )
    AUTH_BASE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    def __init__(
        self,
        google_settings: GoogleSettings,
        oauth_settings: OAuthSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._google = google_settings
        self._oauth = oauth_settings
        self._transport = transport

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._google.http_timeout_seconds, transport=self._transport
        )

    def _require_client_id(self) -> str:
        if not self._google.client_id:
            raise ConfigurationError("Google OAuth client ID is not configured.")
        return self._google.client_id

    def _require_client_credentials(self) -> tuple[str, str]:
        client_id = self._require_client_id()
        if not self._google.client_secret:
            raise ConfigurationError("Google OAuth client secret is not configured.")
        return client_id, self._google.client_secret

    def build_authorization_url(self, state: str) -> str:
        """Construct the Google OAuth consent URL."""
        params = {
            "client_id": self._require_client_id(),
            "redirect_uri": self._google.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.SCOPES),
            "state": state,
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{self.AUTH_BASE_URL}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        """
        Exchange an authorization code for tokens.

        Single attempt: a code is one-time, so any failure ends the flow.
        """
        client_id, client_secret = self._require_client_credentials()
        payload = {
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": self._google.redirect_uri,
        }

        try:
            async with self._http() as client:
                response = await client.post(self.TOKEN_URL, data=payload)
        except httpx.HTTPError as exc:
            raise TokenExchangeError(
                "Token endpoint unreachable during code exchange.",
                details={"reason": type(exc).__name__},
            ) from exc

        if not response.is_success:
            summary = _error_summary(response)
            logger.error("Authorization code exchange rejected: %s", summary)
            raise TokenExchangeError(
                "Failed to exchange authorization code for tokens.", details=summary
            )

        return self._parse_grant(response, TokenExchangeError)

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        """
        Obtain a new access token from a stored refresh token.

        A rejected refresh is retried once after a short backoff; an
        ``invalid_grant`` answer means the grant was revoked and is not retried.
        """
        client_id, client_secret = self._require_client_credentials()
        payload = {
            "client_id": client_id,
            "client_secret": client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        retry = RetryConfig(
            attempts=2, backoff_seconds=self._oauth.refresh_retry_backoff_seconds
        )

        try:
            async with self._http() as client:
                response = await request_with_retry(
                    client.post,
                    self.TOKEN_URL,
                    data=payload,
                    retry_config=retry,
                    should_retry=lambda r: not _is_invalid_grant(r),
                )
        except httpx.HTTPError as exc:
            raise TokenRefreshError(
                "Token endpoint unreachable during refresh.",
                details={"reason": type(exc).__name__},
            ) from exc

        if _is_invalid_grant(response):
            raise ReauthorizationRequiredError(
                "Google rejected the refresh token; reconnect the account.",
                details=_error_summary(response),
            )
        if not response.is_success:
            summary = _error_summary(response)
            logger.error("Access token refresh rejected: %s", summary)
            raise TokenRefreshError("Failed to refresh access token.", details=summary)

        return self._parse_grant(response, TokenRefreshError)

    async def fetch_user_info(self, access_token: str) -> GoogleUserInfo:
        """Fetch the consenting user's email and name."""
        async with self._http() as client:
            response = await client.get(
                self.USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"}
            )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("User info endpoint returned an unexpected payload.")
        return GoogleUserInfo(email=data.get("email"), name=data.get("name"))

    @staticmethod
    def _parse_grant(response: httpx.Response, error_cls: type) -> TokenGrant:
        try:
            token_payload = response.json()
        except ValueError as exc:
            raise error_cls("Token endpoint returned a non-JSON body.") from exc

        access_token = token_payload.get("access_token")
        expires_in = token_payload.get("expires_in")
        if not access_token or not expires_in:
            raise error_cls("Incomplete token payload returned from Google.")

        return TokenGrant(
            access_token=access_token,
            expires_in=int(expires_in),
            refresh_token=token_payload.get("refresh_token"),
            scope=token_payload.get("scope"),
        )


__all__ = ["GoogleOAuthClient"]
