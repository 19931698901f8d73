"""Persistence for reviews fetched from Google and the replies sent to them."""

from __future__ import annotations

from typing import Dict, List, Optional

from reviewdesk.models.oauth import utcnow
from reviewdesk.models.reviews import ReviewRecord
from reviewdesk.services.token_store import RecordStore, account_key


class ReviewStore:
    """Upsert reviews by provider id and record replies on them."""

    SORT_KEY_PREFIX = "review#"

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def _sort_key(self, record_id: str) -> str:
        return f"{self.SORT_KEY_PREFIX}{record_id}"

    def upsert(self, review: ReviewRecord) -> ReviewRecord:
        saved = review.model_copy(update={"updated_at": utcnow()})
        item: Dict = saved.model_dump(mode="json")
        item.update({"pk": account_key(review.account_id), "sk": self._sort_key(review.record_id)})
        self._store.put_item(item)
        return saved

    def get(self, account_id: str, record_id: str) -> Optional[ReviewRecord]:
        item = self._store.get_item(
            partition_key=account_key(account_id), sort_key=self._sort_key(record_id)
        )
        if not item:
            return None
        return ReviewRecord.model_validate(item)

    def list_for_account(self, account_id: str) -> List[ReviewRecord]:
        """Stored reviews for an account, newest first."""
        items = self._store.list_items_with_prefix(
            partition_key=account_key(account_id), sort_key_prefix=self.SORT_KEY_PREFIX
        )
        reviews = [ReviewRecord.model_validate(item) for item in items]
        reviews.sort(key=lambda review: review.review_datetime or "", reverse=True)
        return reviews

    def record_reply(self, review: ReviewRecord, comment: str) -> ReviewRecord:
        replied = review.model_copy(
            update={"reply_comment": comment, "reply_datetime": utcnow().isoformat()}
        )
        return self.upsert(replied)


__all__ = ["ReviewStore"]
