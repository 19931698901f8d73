"""
Authenticated client for the Google Business Profile APIs.

Google serves accounts, locations, reviews and replies from two API families:
the per-service v1 APIs (Account Management, Business Information) and the
older ``mybusiness`` v4 API. Every request here names a primary endpoint and,
where one exists, an equivalent endpoint in the other family to fall back to.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

import httpx

from reviewdesk.core.config import GoogleSettings
from reviewdesk.core.errors import ProviderAPIError
from reviewdesk.models.oauth import AccountCredential

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from reviewdesk.services.token_refresher import TokenRefresher

logger = logging.getLogger(__name__)

ACCOUNT_MANAGEMENT_URL = "https://mybusinessaccountmanagement.googleapis.com/v1"
BUSINESS_INFORMATION_URL = "https://mybusinessbusinessinformation.googleapis.com/v1"
LEGACY_URL = "https://mybusiness.googleapis.com/v4"

LOCATION_READ_MASK = "name,title,storefrontAddress"
REVIEW_PAGE_SIZE = 50
MAX_PAGES = 20

_AUTH_FAILURES = {401, 403}


@dataclass
class ApiRequest:
    """One logical Business Profile call with an optional fallback endpoint."""

    operation: str
    method: str
    url: str
    fallback_url: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)
    fallback_params: Optional[Dict[str, Any]] = None
    json: Optional[Dict[str, Any]] = None


@dataclass
class ApiResponse:
    status_code: int
    data: Dict[str, Any]
    url: str
    used_fallback: bool = False
    credential: Optional[AccountCredential] = None


def _describe_failure(
    url: str, response: Optional[httpx.Response], exc: Optional[Exception] = None
) -> Dict[str, Any]:
    if response is None:
        return {"url": url, "status": None, "message": f"{type(exc).__name__}: {exc}"}
    message = response.text[:500]
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        message = body["error"].get("message") or message
    return {"url": url, "status": response.status_code, "message": message}


def _json_body(response: httpx.Response) -> Dict[str, Any]:
    if not response.content:
        return {}
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {"data": data}


class BusinessProfileClient:
    """
    Make Business Profile calls with a guaranteed-valid access token.

    Before each call the token is refreshed if it is inside the look-ahead
    window. A 401/403 triggers one forced refresh and one retry for the whole
    call. Any other failure of the primary endpoint moves on to the fallback
    endpoint once; if that fails too, :class:`ProviderAPIError` reports both.
    """

    def __init__(
        self,
        token_refresher: "TokenRefresher",
        google_settings: GoogleSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._refresher = token_refresher
        self._timeout = google_settings.http_timeout_seconds
        self._transport = transport

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def call(self, credential: AccountCredential, request: ApiRequest) -> ApiResponse:
        credential = await self._refresher.ensure_fresh(credential)
        attempts: List[Dict[str, Any]] = []
        auth_retried = False

        endpoints = [(request.url, request.params)]
        if request.fallback_url:
            fallback_params = request.fallback_params
            if fallback_params is None:
                fallback_params = request.params
            endpoints.append((request.fallback_url, fallback_params))

        async with self._http() as client:
            for index, (url, params) in enumerate(endpoints):
                response: Optional[httpx.Response] = None
                error: Optional[Exception] = None
                try:
                    response = await self._send(client, credential, url, params, request)
                    if response.status_code in _AUTH_FAILURES and not auth_retried:
                        auth_retried = True
                        logger.info(
                            "%s rejected with HTTP %s; refreshing token and retrying",
                            request.operation,
                            response.status_code,
                        )
                        credential = await self._refresher.ensure_fresh(credential, force=True)
                        response = await self._send(client, credential, url, params, request)
                except httpx.TransportError as exc:
                    error = exc

                if response is not None and response.is_success:
                    if index:
                        logger.info("%s served by fallback endpoint %s", request.operation, url)
                    return ApiResponse(
                        status_code=response.status_code,
                        data=_json_body(response),
                        url=url,
                        used_fallback=bool(index),
                        credential=credential,
                    )

                attempts.append(_describe_failure(url, response, error))
                logger.warning("%s failed: %s", request.operation, attempts[-1])
                if response is not None and response.status_code in _AUTH_FAILURES:
                    break

        raise ProviderAPIError(f"{request.operation} failed", attempts=attempts)

    async def _send(
        self,
        client: httpx.AsyncClient,
        credential: AccountCredential,
        url: str,
        params: Dict[str, Any],
        request: ApiRequest,
    ) -> httpx.Response:
        return await client.request(
            request.method,
            url,
            params=params or None,
            json=request.json,
            headers={"Authorization": f"Bearer {credential.access_token}"},
        )

    async def _collect(
        self,
        credential: AccountCredential,
        build: Callable[[Dict[str, Any]], ApiRequest],
        key: str,
    ) -> List[Dict[str, Any]]:
        """Follow ``nextPageToken`` and concatenate the ``key`` list of each page."""
        items: List[Dict[str, Any]] = []
        params: Dict[str, Any] = {}
        for _ in range(MAX_PAGES):
            response = await self.call(credential, build(dict(params)))
            credential = response.credential or credential
            items.extend(response.data.get(key) or [])
            page_token = response.data.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token
        else:
            logger.warning("Stopped paging %s after %s pages", key, MAX_PAGES)
        return items

    async def list_accounts(self, credential: AccountCredential) -> List[Dict[str, Any]]:
        return await self._collect(
            credential,
            lambda params: ApiRequest(
                operation="list accounts",
                method="GET",
                url=f"{ACCOUNT_MANAGEMENT_URL}/accounts",
                fallback_url=f"{LEGACY_URL}/accounts",
                params=params,
            ),
            "accounts",
        )

    async def list_locations(
        self, credential: AccountCredential, account_name: str
    ) -> List[Dict[str, Any]]:
        return await self._collect(
            credential,
            lambda params: ApiRequest(
                operation=f"list locations for {account_name}",
                method="GET",
                url=f"{BUSINESS_INFORMATION_URL}/{account_name}/locations",
                fallback_url=f"{LEGACY_URL}/{account_name}/locations",
                params={"readMask": LOCATION_READ_MASK, **params},
                fallback_params=params,
            ),
            "locations",
        )

    async def list_reviews(
        self, credential: AccountCredential, location_name: str
    ) -> List[Dict[str, Any]]:
        return await self._collect(
            credential,
            lambda params: ApiRequest(
                operation=f"list reviews for {location_name}",
                method="GET",
                url=f"{LEGACY_URL}/{location_name}/reviews",
                fallback_url=f"{BUSINESS_INFORMATION_URL}/{location_name}/reviews",
                params={"pageSize": REVIEW_PAGE_SIZE, **params},
            ),
            "reviews",
        )

    async def update_reply(
        self, credential: AccountCredential, review_name: str, comment: str
    ) -> Dict[str, Any]:
        response = await self.call(
            credential,
            ApiRequest(
                operation=f"reply to {review_name}",
                method="PUT",
                url=f"{BUSINESS_INFORMATION_URL}/{review_name}/reply",
                fallback_url=f"{LEGACY_URL}/{review_name}/reply",
                json={"comment": comment},
            ),
        )
        return response.data


__all__ = [
    "ApiRequest",
    "ApiResponse",
    "BusinessProfileClient",
]
