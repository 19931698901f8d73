"""
Access token refresh with per-account single-flight.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Optional

from reviewdesk.clients.google_auth import GoogleOAuthClient
from reviewdesk.core.config import OAuthSettings
from reviewdesk.core.errors import NotConnectedError, ReauthorizationRequiredError
from reviewdesk.models.oauth import AccountCredential, utcnow
from reviewdesk.services.token_store import TokenStore

logger = logging.getLogger(__name__)


@dataclass
class _InflightRefresh:
    task: asyncio.Task
    rejected_token: Optional[str]


class TokenRefresher:
    """
    Keep an account's access token valid.

    Concurrent refreshes for one account share a single in-flight task; every
    waiter gets that task's result and the entry is dropped as soon as it
    settles, so the next expiry starts a new refresh. A forced caller whose
    token was rejected never settles for that same token: if the shared run
    hands it back, a new forced run replaces it.
    """

    def __init__(
        self,
        token_store: TokenStore,
        oauth_client: GoogleOAuthClient,
        oauth_settings: OAuthSettings,
    ) -> None:
        self._store = token_store
        self._oauth = oauth_client
        self._window = timedelta(seconds=oauth_settings.refresh_window_seconds)
        self._inflight: Dict[str, _InflightRefresh] = {}

    def needs_refresh(self, credential: AccountCredential) -> bool:
        return credential.needs_refresh(self._window)

    async def ensure_fresh(
        self, credential: AccountCredential, *, force: bool = False
    ) -> AccountCredential:
        """
        Return a credential whose access token is outside the refresh window.

        ``force`` skips the look-ahead check; it is used after the API rejected
        the current token.
        """
        if not credential.is_connected:
            raise NotConnectedError("Google account not connected.")
        if not force and not self.needs_refresh(credential):
            return credential
        if not credential.refresh_token:
            raise ReauthorizationRequiredError(
                "Access token expired and no refresh token is stored; reconnect the account."
            )

        account_id = credential.account_id
        rejected = credential.access_token if force else None
        while True:
            entry = self._inflight.get(account_id)
            if entry is None or entry.task.done():
                entry = self._start(account_id, rejected)
            # Shielded so one caller's timeout does not cancel the shared refresh.
            refreshed = await asyncio.shield(entry.task)
            if (
                rejected is None
                or refreshed.access_token != rejected
                or entry.rejected_token == rejected
            ):
                return refreshed
            logger.debug("Shared refresh for user %s kept the rejected token", account_id)

    def _start(self, account_id: str, rejected_token: Optional[str]) -> _InflightRefresh:
        task = asyncio.ensure_future(self._refresh(account_id, rejected_token))
        entry = _InflightRefresh(task=task, rejected_token=rejected_token)
        self._inflight[account_id] = entry
        task.add_done_callback(lambda done, key=account_id: self._release(key, done))
        return entry

    def _release(self, account_id: str, task: asyncio.Task) -> None:
        entry = self._inflight.get(account_id)
        if entry is not None and entry.task is task:
            del self._inflight[account_id]
        if not task.cancelled():
            task.exception()

    async def _refresh(self, account_id: str, stale_token: Optional[str]) -> AccountCredential:
        current = self._store.get_credential(account_id)
        if current is None or not current.is_connected:
            raise NotConnectedError("Google account not connected.")

        already_fresh = not self.needs_refresh(current)
        if already_fresh and (stale_token is None or current.access_token != stale_token):
            logger.debug("Token for user %s already refreshed by another request", account_id)
            return current
        if not current.refresh_token:
            raise ReauthorizationRequiredError(
                "Access token expired and no refresh token is stored; reconnect the account."
            )

        issued_at = utcnow()
        try:
            grant = await self._oauth.refresh_access_token(current.refresh_token)
        except ReauthorizationRequiredError:
            logger.warning("Refresh token revoked for user %s; disconnecting", account_id)
            self._store.disconnect(account_id)
            raise

        updated = current.model_copy(
            update={
                "access_token": grant.access_token,
                "access_token_expires_at": grant.expires_at(issued_at),
                "refresh_token": grant.refresh_token or current.refresh_token,
                "scopes": grant.scope or current.scopes,
            }
        )
        saved = self._store.save_credential(updated)
        logger.info("Refreshed access token for user %s", account_id)
        return saved


__all__ = ["TokenRefresher"]
