"""
Error taxonomy for the Google Business Profile integration.

Every error carries the HTTP status the API layer reports and a
``reconnect_required`` flag so callers can tell "try again" apart from
"restart the consent flow".
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any, Dict, List, Optional


class ReviewDeskError(Exception):
    """Base exception for the review integration."""

    code: str = "reviewdesk_error"
    http_status: int = HTTPStatus.BAD_REQUEST
    reconnect_required: bool = False

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "reconnect_required": self.reconnect_required,
            "details": self.details,
        }


class ConfigurationError(ReviewDeskError):
    """OAuth client credentials are missing. Fatal, never retried."""

    code = "configuration_error"
    http_status = HTTPStatus.INTERNAL_SERVER_ERROR


class UnauthenticatedError(ReviewDeskError):
    """No account identifier was supplied by the session layer."""

    code = "unauthenticated"
    http_status = HTTPStatus.UNAUTHORIZED


class StateMismatchError(ReviewDeskError):
    """
    The callback ``state`` does not match a live authorization transaction.

    Causes:
    - Forged or replayed callback (possible CSRF)
    - Transaction already consumed
    - Transaction older than the state TTL
    """

    code = "state_mismatch"
    reconnect_required = True


class AuthorizationDeniedError(ReviewDeskError):
    """The user declined consent or Google returned an error to the callback."""

    code = "authorization_denied"
    reconnect_required = True


class TokenExchangeError(ReviewDeskError):
    """The token endpoint rejected an authorization code. Terminal for the flow."""

    code = "token_exchange_failed"
    http_status = HTTPStatus.BAD_GATEWAY
    reconnect_required = True


class TokenRefreshError(ReviewDeskError):
    """The token endpoint rejected a refresh after the retry budget was spent."""

    code = "token_refresh_failed"
    http_status = HTTPStatus.BAD_GATEWAY
    reconnect_required = True


class ReauthorizationRequiredError(ReviewDeskError):
    """The refresh token is absent or permanently invalid."""

    code = "reauthorization_required"
    http_status = HTTPStatus.UNAUTHORIZED
    reconnect_required = True


class NotConnectedError(ReauthorizationRequiredError):
    """The account has no stored access token."""

    code = "not_connected"


class NoBusinessSelectedError(ReviewDeskError):
    """A sync or reply was requested before a business location was chosen."""

    code = "no_business_selected"
    http_status = HTTPStatus.CONFLICT


class ReviewNotFoundError(ReviewDeskError):
    code = "review_not_found"
    http_status = HTTPStatus.NOT_FOUND


class NotReplyCapableError(ReviewDeskError):
    """The stored review lacks the business-reply identifier needed to reply."""

    code = "not_reply_capable"
    http_status = HTTPStatus.UNPROCESSABLE_ENTITY


class ProviderAPIError(ReviewDeskError):
    """
    The Business Profile API failed for a non-authorization reason.

    ``attempts`` lists every endpoint tried, primary first, with the status
    code and message the provider returned.
    """

    code = "provider_api_error"
    http_status = HTTPStatus.BAD_GATEWAY

    def __init__(self, message: str, *, attempts: Optional[List[Dict[str, Any]]] = None) -> None:
        self.attempts = attempts or []
        super().__init__(message, details={"attempts": self.attempts})

    @property
    def status(self) -> Optional[int]:
        """Status of the last attempt, if the provider answered at all."""
        if not self.attempts:
            return None
        return self.attempts[-1].get("status")


__all__ = [
    "AuthorizationDeniedError",
    "ConfigurationError",
    "NoBusinessSelectedError",
    "NotConnectedError",
    "NotReplyCapableError",
    "ProviderAPIError",
    "ReauthorizationRequiredError",
    "ReviewDeskError",
    "ReviewNotFoundError",
    "StateMismatchError",
    "TokenExchangeError",
    "TokenRefreshError",
    "UnauthenticatedError",
]
