"""
FastAPI routes for the Google Business Profile review integration.
"""

from __future__ import annotations

import asyncio
import logging
from http import HTTPStatus
from typing import Annotated, Any, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from fastapi import APIRouter, Depends, Header, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from reviewdesk.core.errors import AuthorizationDeniedError
from reviewdesk.dependencies import (
    get_app_settings,
    get_authorization_service,
    get_current_account_id,
    get_review_sync_service,
    get_token_store,
)
from reviewdesk.models.oauth import AccountCredential
from reviewdesk.schemas import (
    AuthorizationCallbackResponse,
    AuthorizationStartResponse,
    AuthorizationWaitResponse,
    BusinessListResponse,
    BusinessSelectionRequest,
    BusinessSelectionResponse,
    ConnectionStatusResponse,
    OAuthCallbackPayload,
    ReplyRequest,
    ReplyResponse,
    ReviewListResponse,
    SyncResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)

AccountId = Annotated[str, Depends(get_current_account_id)]

MAX_WAIT_SECONDS = 60.0


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


def _with_query(url: str, **params: str) -> str:
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True) + list(params.items())
    return urlunsplit(parts._replace(query=urlencode(query)))


def get_connected_credential(
    account_id: AccountId,
    token_store: Annotated[Any, Depends(get_token_store)],
) -> AccountCredential:
    """Load the caller's credential, failing with ``not_connected`` when absent."""
    return token_store.require_connected(account_id)


ConnectedCredential = Annotated[AccountCredential, Depends(get_connected_credential)]


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get(
    "/auth/google/authorize",
    response_model=AuthorizationStartResponse,
    status_code=HTTPStatus.OK,
)
async def start_google_authorization(
    request: Request,
    account_id: AccountId,
    service: Annotated[Any, Depends(get_authorization_service)],
    redirect_to: Optional[str] = Query(
        default=None,
        description="Optional URL to return the browser to once the account is connected.",
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the Google consent screen.",
    ),
) -> Any:
    """Open a consent flow and hand back the Google authorization URL."""
    start = await service.start_authorization(account_id, redirect_to=redirect_to)
    if redirect or _wants_html(request):
        return RedirectResponse(
            url=start.authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT
        )
    return AuthorizationStartResponse(
        authorization_url=start.authorization_url,
        state=start.state,
        expires_at=start.expires_at,
    )


@router.post(
    "/auth/google/callback",
    response_model=AuthorizationCallbackResponse,
    status_code=HTTPStatus.OK,
)
async def complete_google_authorization(
    payload: OAuthCallbackPayload,
    service: Annotated[Any, Depends(get_authorization_service)],
    x_user_id: Optional[str] = Header(default=None),
) -> AuthorizationCallbackResponse:
    """Exchange the authorization code for tokens and store them for the flow's account."""
    result = await service.complete_authorization(
        payload.code, payload.state, account_id=x_user_id
    )
    return AuthorizationCallbackResponse(
        status="connected",
        redirect_to=result.redirect_to,
        external_email=result.credential.external_email,
    )


@router.get("/auth/google/callback", status_code=HTTPStatus.OK)
async def complete_google_authorization_redirect(
    request: Request,
    service: Annotated[Any, Depends(get_authorization_service)],
    settings: Annotated[Any, Depends(get_app_settings)],
    state: str = Query(default="", description="Opaque state issued with the consent URL."),
    code: str = Query(default="", description="Authorization code returned by Google."),
    error: Optional[str] = Query(default=None, description="Error reported by Google."),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
    x_user_id: Optional[str] = Header(default=None),
) -> Response:
    """Handle Google's redirect back to the application."""
    browser = redirect or _wants_html(request)
    if error:
        try:
            service.deny_authorization(state, error)
        except AuthorizationDeniedError as exc:
            target = exc.details.get("redirect_to") or settings.frontend_base_url
            if not (target and browser):
                raise
            return RedirectResponse(
                url=_with_query(str(target), error=error),
                status_code=HTTPStatus.TEMPORARY_REDIRECT,
            )

    response = await complete_google_authorization(
        payload=OAuthCallbackPayload(code=code, state=state),
        service=service,
        x_user_id=x_user_id,
    )

    redirect_target = response.redirect_to or settings.frontend_base_url
    if redirect_target and browser:
        return RedirectResponse(
            url=str(redirect_target), status_code=HTTPStatus.TEMPORARY_REDIRECT
        )
    return JSONResponse(content=response.model_dump(mode="json"))


@router.get(
    "/auth/google/wait",
    response_model=AuthorizationWaitResponse,
    status_code=HTTPStatus.OK,
)
async def wait_for_google_authorization(
    response: Response,
    service: Annotated[Any, Depends(get_authorization_service)],
    state: str = Query(..., description="State returned when the flow was started."),
    timeout: float = Query(default=30.0, ge=0.0, le=MAX_WAIT_SECONDS),
) -> AuthorizationWaitResponse:
    """Long-poll until the consent flow for ``state`` finishes."""
    try:
        outcome = await service.waiters.wait(state, timeout=timeout)
    except asyncio.TimeoutError:
        response.status_code = HTTPStatus.ACCEPTED
        return AuthorizationWaitResponse(status="pending")
    return AuthorizationWaitResponse(
        status=outcome.status, redirect_to=outcome.redirect_to, error=outcome.error
    )


@router.get(
    "/integrations/google/status",
    response_model=ConnectionStatusResponse,
    status_code=HTTPStatus.OK,
)
async def google_connection_status(
    account_id: AccountId,
    service: Annotated[Any, Depends(get_review_sync_service)],
) -> ConnectionStatusResponse:
    status = service.connection_status(account_id)
    return ConnectionStatusResponse(**vars(status))


@router.post("/integrations/google/disconnect", status_code=HTTPStatus.OK)
async def disconnect_google(
    account_id: AccountId,
    service: Annotated[Any, Depends(get_review_sync_service)],
) -> dict:
    service.disconnect(account_id)
    return {"status": "disconnected"}


@router.get(
    "/integrations/google/businesses",
    response_model=BusinessListResponse,
    status_code=HTTPStatus.OK,
)
async def list_google_businesses(
    credential: ConnectedCredential,
    service: Annotated[Any, Depends(get_review_sync_service)],
) -> BusinessListResponse:
    """List every location across the Business Profile accounts the user manages."""
    businesses = await service.list_businesses(credential)
    return BusinessListResponse(businesses=businesses)


@router.put(
    "/integrations/google/business",
    response_model=BusinessSelectionResponse,
    status_code=HTTPStatus.OK,
)
async def select_google_business(
    payload: BusinessSelectionRequest,
    credential: ConnectedCredential,
    service: Annotated[Any, Depends(get_review_sync_service)],
) -> BusinessSelectionResponse:
    updated = service.select_business(credential, payload.external_id, payload.display_name)
    return BusinessSelectionResponse(
        selected_business_id=updated.selected_business_id,
        selected_business_name=updated.selected_business_name,
    )


@router.post(
    "/integrations/google/reviews/sync",
    response_model=SyncResponse,
    status_code=HTTPStatus.OK,
)
async def sync_google_reviews(
    credential: ConnectedCredential,
    service: Annotated[Any, Depends(get_review_sync_service)],
) -> SyncResponse:
    """Pull the selected business's reviews from Google into the review store."""
    result = await service.sync_reviews(credential)
    return SyncResponse(**vars(result))


@router.get(
    "/integrations/google/reviews",
    response_model=ReviewListResponse,
    status_code=HTTPStatus.OK,
)
async def list_google_reviews(
    account_id: AccountId,
    service: Annotated[Any, Depends(get_review_sync_service)],
) -> ReviewListResponse:
    return ReviewListResponse(reviews=service.list_reviews(account_id))


@router.post(
    "/integrations/google/reviews/{record_id}/reply",
    response_model=ReplyResponse,
    status_code=HTTPStatus.OK,
)
async def reply_to_google_review(
    record_id: str,
    payload: ReplyRequest,
    credential: ConnectedCredential,
    service: Annotated[Any, Depends(get_review_sync_service)],
) -> ReplyResponse:
    """Publish the owner's reply on Google and record it on the stored review."""
    review = await service.reply_to_review(credential, record_id, payload.text)
    return ReplyResponse(review=review)


__all__ = ["router"]
