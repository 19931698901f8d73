"""
Pydantic models for business selection, review sync and replies.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from reviewdesk.models.reviews import BusinessLocation, ReviewRecord


class BusinessListResponse(BaseModel):
    businesses: List[BusinessLocation]


class BusinessSelectionRequest(BaseModel):
    """The location the owner picked from the business list."""

    external_id: str = Field(
        ...,
        min_length=1,
        description="Location resource name, e.g. accounts/123/locations/456.",
    )
    display_name: str = Field(..., min_length=1)


class BusinessSelectionResponse(BaseModel):
    selected_business_id: str
    selected_business_name: Optional[str] = None


class SyncResponse(BaseModel):
    business_id: str
    reviews_found: int
    reviews_stored: int
    reviews_failed: int
    synced_at: datetime


class ReviewListResponse(BaseModel):
    reviews: List[ReviewRecord]


class ReplyRequest(BaseModel):
    # Google caps reply comments at 4096 bytes.
    text: str = Field(..., min_length=1, max_length=4096)


class ReplyResponse(BaseModel):
    review: ReviewRecord


__all__ = [
    "BusinessListResponse",
    "BusinessSelectionRequest",
    "BusinessSelectionResponse",
    "ReplyRequest",
    "ReplyResponse",
    "ReviewListResponse",
    "SyncResponse",
]
