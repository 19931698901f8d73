"""
Business selection, review sync and review replies for Google Business Profile.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from reviewdesk.core.errors import (
    NoBusinessSelectedError,
    NotReplyCapableError,
    ProviderAPIError,
    ReviewNotFoundError,
)
from reviewdesk.models.oauth import AccountCredential, utcnow
from reviewdesk.models.reviews import BusinessLocation, ReviewRecord
from reviewdesk.services.review_store import ReviewStore
from reviewdesk.services.token_store import TokenStore

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from reviewdesk.clients.business_profile import BusinessProfileClient

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    business_id: str
    reviews_found: int
    reviews_stored: int
    reviews_failed: int
    synced_at: datetime


@dataclass
class ConnectionStatus:
    connected: bool
    token_expired: bool
    reconnect_required: bool
    external_email: Optional[str] = None
    selected_business_id: Optional[str] = None
    selected_business_name: Optional[str] = None
    last_synced_at: Optional[datetime] = None


def _location_from_api(account: Dict[str, Any], location: Dict[str, Any]) -> BusinessLocation:
    account_name = account.get("name") or ""
    name = location.get("name") or ""
    # The v1 Business Information API names locations without their account.
    external_id = name if name.startswith("accounts/") else f"{account_name}/{name}"
    address = location.get("storefrontAddress") or location.get("address") or {}
    formatted = address.get("formattedAddress") or ", ".join(
        part
        for part in [*(address.get("addressLines") or []), address.get("locality")]
        if part
    )
    return BusinessLocation(
        external_id=external_id,
        display_name=location.get("title")
        or location.get("locationName")
        or "Business Location",
        address=formatted or "No address",
        account_name=account_name,
        account_display_name=account.get("accountName") or account_name,
    )


class ReviewSyncService:
    """Operations the dashboard performs on a connected Google account."""

    def __init__(
        self,
        token_store: TokenStore,
        review_store: ReviewStore,
        api_client: "BusinessProfileClient",
    ) -> None:
        self._tokens = token_store
        self._reviews = review_store
        self._api = api_client

    async def list_businesses(self, credential: AccountCredential) -> List[BusinessLocation]:
        """
        Flatten every location of every account the user manages.

        An account whose locations cannot be listed is logged and skipped.
        """
        credential = self._tokens.require_connected(credential.account_id)
        accounts = await self._api.list_accounts(credential)

        businesses: List[BusinessLocation] = []
        for account in accounts:
            account_name = account.get("name")
            if not account_name:
                continue
            try:
                locations = await self._api.list_locations(credential, account_name)
            except ProviderAPIError as exc:
                logger.warning("Skipping locations for %s: %s", account_name, exc.attempts)
                continue
            businesses.extend(_location_from_api(account, location) for location in locations)

        logger.info(
            "Found %s business locations across %s accounts for user %s",
            len(businesses),
            len(accounts),
            credential.account_id,
        )
        return businesses

    def select_business(
        self, credential: AccountCredential, external_id: str, display_name: str
    ) -> AccountCredential:
        current = self._tokens.require_connected(credential.account_id)
        if (
            current.selected_business_id == external_id
            and current.selected_business_name == display_name
        ):
            return current
        return self._tokens.save_credential(
            current.model_copy(
                update={"selected_business_id": external_id, "selected_business_name": display_name}
            )
        )

    async def sync_reviews(self, credential: AccountCredential) -> SyncResult:
        """
        Fetch the selected business's reviews and upsert them by provider id.

        A review that cannot be stored is logged and skipped; ``last_synced_at``
        is updated whatever the per-review outcome.
        """
        current = self._tokens.require_connected(credential.account_id)
        business_id = current.selected_business_id
        if not business_id:
            raise NoBusinessSelectedError("No business selected. Please select a business first.")

        payloads = await self._api.list_reviews(current, business_id)

        stored = failed = 0
        for payload in payloads:
            try:
                record = ReviewRecord.from_api(
                    payload, account_id=current.account_id, business_id=business_id
                )
                self._reviews.upsert(record)
            except Exception:
                failed += 1
                logger.exception("Failed to store review %s", payload.get("name"))
            else:
                stored += 1

        synced_at = utcnow()
        latest = self._tokens.get_credential(current.account_id) or current
        self._tokens.save_credential(latest.model_copy(update={"last_synced_at": synced_at}))

        logger.info(
            "Synced %s/%s reviews for %s (user %s)",
            stored,
            len(payloads),
            business_id,
            current.account_id,
        )
        return SyncResult(
            business_id=business_id,
            reviews_found=len(payloads),
            reviews_stored=stored,
            reviews_failed=failed,
            synced_at=synced_at,
        )

    async def reply_to_review(
        self, credential: AccountCredential, record_id: str, text: str
    ) -> ReviewRecord:
        current = self._tokens.require_connected(credential.account_id)
        review = self._reviews.get(current.account_id, record_id)
        if review is None:
            raise ReviewNotFoundError("Review not found.")
        if not review.is_reply_capable:
            raise NotReplyCapableError(
                "This review does not have a Google Business review ID for replies."
            )

        await self._api.update_reply(current, review.google_business_review_id, text)
        logger.info("Replied to review %s for user %s", record_id, current.account_id)
        return self._reviews.record_reply(review, text)

    def list_reviews(self, account_id: str) -> List[ReviewRecord]:
        return self._reviews.list_for_account(account_id)

    def connection_status(self, account_id: str) -> ConnectionStatus:
        credential = self._tokens.get_credential(account_id)
        if credential is None or not credential.is_connected:
            return ConnectionStatus(connected=False, token_expired=False, reconnect_required=True)
        expired = credential.is_expired
        return ConnectionStatus(
            connected=True,
            token_expired=expired,
            reconnect_required=expired and not credential.refresh_token,
            external_email=credential.external_email,
            selected_business_id=credential.selected_business_id,
            selected_business_name=credential.selected_business_name,
            last_synced_at=credential.last_synced_at,
        )

    def disconnect(self, account_id: str) -> None:
        self._tokens.disconnect(account_id)


__all__ = ["ConnectionStatus", "ReviewSyncService", "SyncResult"]
