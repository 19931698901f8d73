"""
Google consent flow: authorization URL creation and code exchange.

A consent flow is bound to one :class:`AuthorizationTransaction`. The
transaction is written when the URL is built and consumed exactly once when
the callback arrives; the callback must present the same ``state``.

Callers that opened the consent screen in a popup can await the outcome with
:class:`AuthorizationWaiters` instead of listening for window messages.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

import httpx

from reviewdesk.clients.google_auth import GoogleOAuthClient
from reviewdesk.core.config import OAuthSettings
from reviewdesk.core.errors import (
    AuthorizationDeniedError,
    ReviewDeskError,
    StateMismatchError,
    TokenExchangeError,
    UnauthenticatedError,
)
from reviewdesk.models.oauth import AccountCredential, AuthorizationTransaction, utcnow
from reviewdesk.services.token_store import TokenStore

logger = logging.getLogger(__name__)


@dataclass
class AuthorizationStart:
    authorization_url: str
    state: str
    expires_at: datetime


@dataclass
class AuthorizationOutcome:
    """Result delivered to whoever awaits a consent flow."""

    state: str
    status: str
    account_id: Optional[str] = None
    redirect_to: Optional[str] = None
    error: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self.status == "connected"


@dataclass
class AuthorizationResult:
    credential: AccountCredential
    redirect_to: Optional[str] = None


class AuthorizationWaiters:
    """
    One-shot futures keyed by ``state``.

    ``register`` is called when a flow starts, ``resolve`` exactly once when
    its callback finishes. Timeouts belong to the waiter: a timed-out
    ``wait`` leaves the future in place so the caller may wait again.
    """

    def __init__(self, ttl: timedelta) -> None:
        self._ttl = ttl
        self._futures: Dict[str, tuple[datetime, asyncio.Future]] = {}

    def register(self, state: str) -> None:
        self._purge_stale()
        future = asyncio.get_running_loop().create_future()
        self._futures[state] = (utcnow(), future)

    def resolve(self, outcome: AuthorizationOutcome) -> None:
        entry = self._futures.get(outcome.state)
        if entry is None:
            return
        future = entry[1]
        if not future.done():
            future.set_result(outcome)

    async def wait(self, state: str, *, timeout: float) -> AuthorizationOutcome:
        """
        Wait for the flow identified by ``state``.

        Raises ``StateMismatchError`` for an unknown state and
        ``asyncio.TimeoutError`` when ``timeout`` elapses first.
        """
        entry = self._futures.get(state)
        if entry is None:
            raise StateMismatchError("No authorization flow is pending for this state.")
        future = entry[1]
        outcome = await asyncio.wait_for(asyncio.shield(future), timeout)
        self._futures.pop(state, None)
        return outcome

    def pending(self, state: str) -> bool:
        entry = self._futures.get(state)
        return entry is not None and not entry[1].done()

    def _purge_stale(self) -> None:
        cutoff = utcnow() - self._ttl
        for state, (created_at, future) in list(self._futures.items()):
            if created_at < cutoff:
                if not future.done():
                    future.cancel()
                del self._futures[state]


class AuthorizationService:
    """Start consent flows and complete them from the provider callback."""

    def __init__(
        self,
        token_store: TokenStore,
        oauth_client: GoogleOAuthClient,
        oauth_settings: OAuthSettings,
        waiters: Optional[AuthorizationWaiters] = None,
    ) -> None:
        self._store = token_store
        self._oauth = oauth_client
        self._ttl = timedelta(seconds=oauth_settings.state_ttl_seconds)
        self._waiters = waiters or AuthorizationWaiters(self._ttl)

    @property
    def waiters(self) -> AuthorizationWaiters:
        return self._waiters

    async def start_authorization(
        self, account_id: Optional[str], *, redirect_to: Optional[str] = None
    ) -> AuthorizationStart:
        """Persist a new transaction and return the consent URL for it."""
        if not account_id:
            raise UnauthenticatedError("Sign in before connecting a Google account.")

        state = secrets.token_urlsafe(32)
        authorization_url = self._oauth.build_authorization_url(state)
        transaction = AuthorizationTransaction(
            state=state, account_id=account_id, redirect_to=redirect_to
        )
        self._store.put_transaction(transaction, ttl=self._ttl)
        self._waiters.register(state)

        logger.info("Started Google authorization for user %s", account_id)
        return AuthorizationStart(
            authorization_url=authorization_url,
            state=state,
            expires_at=transaction.created_at + self._ttl,
        )

    async def complete_authorization(
        self, code: str, state: str, *, account_id: Optional[str] = None
    ) -> AuthorizationResult:
        """
        Validate ``state``, exchange ``code`` and store the resulting tokens.

        ``account_id`` is the session's account when the callback arrives with
        one; it must match the account that started the flow.
        """
        if not state:
            raise StateMismatchError("Authorization state is required.")

        transaction = self._store.pop_transaction(state)
        if transaction is None:
            raise StateMismatchError("Unknown or already used authorization state.")

        try:
            result = await self._complete(transaction, code, account_id)
        except Exception as exc:
            self._waiters.resolve(
                AuthorizationOutcome(
                    state=state,
                    status="failed",
                    account_id=transaction.account_id,
                    redirect_to=transaction.redirect_to,
                    error=exc.code if isinstance(exc, ReviewDeskError) else "internal_error",
                )
            )
            raise

        self._waiters.resolve(
            AuthorizationOutcome(
                state=state,
                status="connected",
                account_id=transaction.account_id,
                redirect_to=transaction.redirect_to,
            )
        )
        return result

    def deny_authorization(self, state: str, reason: str) -> None:
        """Close a flow the provider reported as failed, e.g. ``access_denied``."""
        transaction = self._store.pop_transaction(state) if state else None
        if transaction is None:
            raise StateMismatchError("Unknown or already used authorization state.")
        self._waiters.resolve(
            AuthorizationOutcome(
                state=state,
                status="failed",
                account_id=transaction.account_id,
                redirect_to=transaction.redirect_to,
                error=reason,
            )
        )
        logger.info("Google authorization for user %s ended with %s", transaction.account_id, reason)
        raise AuthorizationDeniedError(
            f"Google authorization was not granted: {reason}",
            details={"reason": reason, "redirect_to": transaction.redirect_to},
        )

    async def _complete(
        self,
        transaction: AuthorizationTransaction,
        code: str,
        session_account_id: Optional[str],
    ) -> AuthorizationResult:
        if transaction.is_expired(self._ttl):
            raise StateMismatchError("Authorization state has expired; start again.")
        if session_account_id and session_account_id != transaction.account_id:
            logger.warning(
                "Authorization state for user %s presented by user %s",
                transaction.account_id,
                session_account_id,
            )
            raise StateMismatchError("Authorization state does not belong to this account.")
        if not code:
            raise TokenExchangeError("Authorization code not provided.")

        issued_at = utcnow()
        grant = await self._oauth.exchange_authorization_code(code)

        existing = self._store.get_credential(transaction.account_id)
        base = existing or AccountCredential(account_id=transaction.account_id)
        credential = base.model_copy(
            update={
                "access_token": grant.access_token,
                "access_token_expires_at": grant.expires_at(issued_at),
                "refresh_token": grant.refresh_token or base.refresh_token,
                "scopes": grant.scope,
            }
        )
        credential = self._store.save_credential(credential)
        logger.info("Stored Google tokens for user %s", transaction.account_id)

        credential = await self._enrich(credential)
        return AuthorizationResult(credential=credential, redirect_to=transaction.redirect_to)

    async def _enrich(self, credential: AccountCredential) -> AccountCredential:
        try:
            user_info = await self._oauth.fetch_user_info(credential.access_token or "")
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Could not fetch Google profile for user %s: %s", credential.account_id, exc
            )
            return credential
        return self._store.save_credential(
            credential.model_copy(
                update={"external_email": user_info.email, "external_name": user_info.name}
            )
        )


__all__ = [
    "AuthorizationOutcome",
    "AuthorizationResult",
    "AuthorizationService",
    "AuthorizationStart",
    "AuthorizationWaiters",
]
