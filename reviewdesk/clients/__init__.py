"""Expose constructed client wrappers."""

from .business_profile import ApiRequest, ApiResponse, BusinessProfileClient
from .dynamodb import DynamoDBStore
from .google_auth import GoogleOAuthClient
from .sqlite_store import SQLiteStore

__all__ = [
    "ApiRequest",
    "ApiResponse",
    "BusinessProfileClient",
    "DynamoDBStore",
    "GoogleOAuthClient",
    "SQLiteStore",
]
