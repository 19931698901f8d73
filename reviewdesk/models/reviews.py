"""
Domain models for business locations and stored reviews.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from reviewdesk.models.oauth import utcnow

REVIEW_SOURCE = "google_business_profile"

_STAR_RATINGS = {"ONE": 1, "TWO": 2, "THREE": 3, "FOUR": 4, "FIVE": 5}


def star_rating_to_int(value: Any) -> int:
    """Map the API ``starRating`` enum (or a plain number) to 1-5, 0 when unknown."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value if 1 <= value <= 5 else 0
    text = str(value).upper().replace("STAR_RATING_", "")
    if text.isdigit():
        number = int(text)
        return number if 1 <= number <= 5 else 0
    return _STAR_RATINGS.get(text, 0)


def review_record_id(google_review_id: str) -> str:
    """Stable record identifier derived from the provider review id."""
    return uuid.uuid5(uuid.NAMESPACE_URL, f"google-review:{google_review_id}").hex


class BusinessLocation(BaseModel):
    """A selectable business location flattened from accounts and locations."""

    external_id: str = Field(..., description="Location resource name under its account.")
    display_name: str
    address: str = "No address"
    account_name: Optional[str] = None
    account_display_name: Optional[str] = None


class ReviewRecord(BaseModel):
    """A review stored for the dashboard, keyed by the provider review id."""

    record_id: str
    account_id: str
    business_id: Optional[str] = None
    google_review_id: str
    google_business_review_id: Optional[str] = Field(
        None, description="Resource name required by the reply endpoint."
    )
    author_name: str = "Anonymous"
    author_photo_url: Optional[str] = None
    rating: int = 0
    comment: str = ""
    review_datetime: Optional[str] = None
    reply_comment: Optional[str] = None
    reply_datetime: Optional[str] = None
    source: str = REVIEW_SOURCE
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_reply_capable(self) -> bool:
        return bool(self.google_business_review_id)

    @classmethod
    def from_api(
        cls, payload: Dict[str, Any], *, account_id: str, business_id: Optional[str]
    ) -> "ReviewRecord":
        """Build a record from a Business Profile ``Review`` resource."""
        name = payload.get("name")
        google_review_id = payload.get("reviewId") or name
        if not google_review_id:
            raise ValueError("Review payload has neither reviewId nor name.")
        reviewer = payload.get("reviewer") or {}
        reply = payload.get("reviewReply") or {}
        return cls(
            record_id=review_record_id(google_review_id),
            account_id=account_id,
            business_id=business_id,
            google_review_id=google_review_id,
            google_business_review_id=name,
            author_name=reviewer.get("displayName") or "Anonymous",
            author_photo_url=reviewer.get("profilePhotoUrl"),
            rating=star_rating_to_int(payload.get("starRating")),
            comment=payload.get("comment") or "",
            review_datetime=payload.get("createTime") or utcnow().isoformat(),
            reply_comment=reply.get("comment"),
            reply_datetime=reply.get("updateTime"),
        )


__all__ = [
    "BusinessLocation",
    "REVIEW_SOURCE",
    "ReviewRecord",
    "review_record_id",
    "star_rating_to_int",
]
