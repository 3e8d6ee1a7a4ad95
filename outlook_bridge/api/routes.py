"""
FastAPI routes for the Outlook bridge.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from http import HTTPStatus
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from outlook_bridge.core.errors import (
    REAUTHENTICATE_MESSAGE,
    AccountNotFound,
    AuthenticationRequired,
    ExchangeFailed,
    RemoteCallFailed,
    StorageWriteFailed,
    Unauthorized,
)
from outlook_bridge.dependencies import (
    get_app_settings,
    get_credential_store,
    get_mail_service,
    get_microsoft_oauth_client,
    get_oauth_state_encoder,
)
from outlook_bridge.schemas import (
    AccountListResponse,
    ActiveAccountRequest,
    AuthorizationStartResponse,
    MessageListResponse,
    OAuthCallbackResult,
    TokenStatusResponse,
)
from outlook_bridge.services.mail import FolderNotFound, summarize_message

router = APIRouter()
logger = logging.getLogger(__name__)


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/authorize", status_code=HTTPStatus.OK)
async def start_oauth_flow(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_microsoft_oauth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the Microsoft consent screen.",
    ),
) -> Response:
    """
    Kick off the OAuth flow by generating a state token and authorization URL.
    """
    if not oauth_client.is_configured:
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail="Microsoft Graph API credentials are not configured.",
        )

    state = state_encoder.issue()
    authorization_url = oauth_client.build_authorization_url(state=state)

    if redirect or _wants_html(request):
        return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)

    payload = AuthorizationStartResponse(authorization_url=authorization_url, state=state)
    return JSONResponse(content=payload.model_dump())


@router.get("/auth/callback", response_model=OAuthCallbackResult, status_code=HTTPStatus.OK)
async def handle_oauth_callback(
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    credential_store: Annotated[Any, Depends(get_credential_store)],
    settings: Annotated[Any, Depends(get_app_settings)],
    code: Optional[str] = Query(None, description="Authorization code returned by Microsoft."),
    state: Optional[str] = Query(None, description="OAuth state token."),
    error: Optional[str] = Query(None),
    error_description: Optional[str] = Query(None),
) -> OAuthCallbackResult:
    """Validate state, exchange the code and register the account."""
    if error:
        logger.error("Authentication error: %s - %s", error, error_description)
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail={"error": error, "error_description": error_description},
        )
    if not code:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="No authorization code provided.",
        )
    if not state:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="Missing OAuth state token."
        )

    state_encoder.verify(state, max_age=timedelta(seconds=settings.oauth.state_ttl_seconds))

    try:
        await credential_store.exchange_code_for_tokens(code)
    except ExchangeFailed as exc:
        logger.error("Token exchange failed: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail=f"Failed to exchange authorization code: {exc}",
        ) from exc
    except StorageWriteFailed as exc:
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail=f"Tokens were issued but could not be saved: {exc}",
        ) from exc

    account = await credential_store.get_active_account()
    return OAuthCallbackResult(status="connected", account=account)


@router.get("/auth/token-status", response_model=TokenStatusResponse)
async def token_status(
    credential_store: Annotated[Any, Depends(get_credential_store)],
) -> TokenStatusResponse:
    statuses = await credential_store.get_token_status()
    return TokenStatusResponse(has_token=bool(statuses), accounts=statuses)


@router.get("/accounts", response_model=AccountListResponse)
async def list_accounts(
    credential_store: Annotated[Any, Depends(get_credential_store)],
) -> AccountListResponse:
    return AccountListResponse(
        accounts=await credential_store.get_all_accounts(),
        active_account=await credential_store.get_active_account(),
    )


@router.put("/accounts/active", response_model=AccountListResponse)
async def switch_active_account(
    payload: ActiveAccountRequest,
    credential_store: Annotated[Any, Depends(get_credential_store)],
) -> AccountListResponse:
    try:
        await credential_store.set_active_account(payload.account)
    except AccountNotFound as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc)) from exc
    except StorageWriteFailed as exc:
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc
    return AccountListResponse(
        accounts=await credential_store.get_all_accounts(),
        active_account=payload.account,
    )


@router.delete("/accounts", status_code=HTTPStatus.NO_CONTENT)
async def clear_accounts(
    credential_store: Annotated[Any, Depends(get_credential_store)],
) -> Response:
    """Forget every stored account, forcing re-authentication."""
    try:
        await credential_store.clear_tokens()
    except StorageWriteFailed as exc:
        raise HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc
    return Response(status_code=HTTPStatus.NO_CONTENT)


@router.get("/mail/messages", response_model=MessageListResponse)
async def list_messages(
    mail_service: Annotated[Any, Depends(get_mail_service)],
    folder: str = Query("inbox", description="Well-known folder name or display name."),
    count: int = Query(10, description="Number of messages to return."),
    raw: bool = Query(
        default=False,
        description="When true, return the Graph collection (`value` and `@odata.count`) unsummarized.",
    ),
) -> Response | MessageListResponse:
    """List the newest messages in a folder for the active account."""
    try:
        result = await mail_service.list_messages(folder=folder, count=count)
    except (AuthenticationRequired, Unauthorized) as exc:
        logger.info("Listing messages requires authentication: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED, detail=REAUTHENTICATE_MESSAGE
        ) from exc
    except FolderNotFound as exc:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=str(exc)) from exc
    except RemoteCallFailed as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail={"message": "Error listing emails.", "status": exc.status_code, "body": exc.body},
        ) from exc

    if raw:
        return JSONResponse(content=result.to_graph_payload())
    return MessageListResponse(
        folder=folder,
        count=result.count,
        messages=[summarize_message(message) for message in result.items],
    )


__all__ = ["router"]
