# linkhub/routers/platforms_router.py
import uuid
from typing import List

import structlog
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from linkhub.config import Settings, get_settings
from linkhub.dependencies.auth import get_current_user_id
from linkhub.dependencies.linking import get_orchestrator
from linkhub.errors import (
    AccountAlreadyLinkedElsewhere,
    AdapterUnavailable,
    AuthorizationDenied,
    CredentialExpired,
    ExchangeFailed,
    IdentityUnresolvable,
    LinkError,
    LinkedAccountNotFound,
    SessionExpired,
    StateMismatch,
    UnknownPlatform,
    Unsupported,
)
from linkhub.schemas.link_schema import FreshCredential, LinkedAccountSummary, LinkStartResponse, LinkStatus
from linkhub.services.link_orchestrator import LinkOrchestrator

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/platforms", tags=["platforms"])

ERROR_STATUS = {
    UnknownPlatform: status.HTTP_400_BAD_REQUEST,
    AuthorizationDenied: status.HTTP_400_BAD_REQUEST,
    SessionExpired: status.HTTP_400_BAD_REQUEST,
    StateMismatch: status.HTTP_400_BAD_REQUEST,
    Unsupported: status.HTTP_400_BAD_REQUEST,
    CredentialExpired: status.HTTP_401_UNAUTHORIZED,
    LinkedAccountNotFound: status.HTTP_404_NOT_FOUND,
    AccountAlreadyLinkedElsewhere: status.HTTP_409_CONFLICT,
    ExchangeFailed: status.HTTP_502_BAD_GATEWAY,
    IdentityUnresolvable: status.HTTP_502_BAD_GATEWAY,
    AdapterUnavailable: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(exc: LinkError) -> int:
    return ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)


def session_cookie_name(platform: str) -> str:
    return f"link_session_{platform}"


@router.get("/accounts", response_model=List[LinkedAccountSummary])
async def list_accounts(
    user_id: str = Depends(get_current_user_id),
    orchestrator: LinkOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.list_accounts(user_id)


@router.post("/accounts/{account_id}/fresh-credential", response_model=FreshCredential)
async def fresh_credential(
    account_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    orchestrator: LinkOrchestrator = Depends(get_orchestrator),
):
    credential = await orchestrator.ensure_fresh_credential_by_id(account_id, user_id)
    return FreshCredential(
        access_token=credential.access_token, token_type=credential.token_type, expires_at=credential.expires_at
    )


@router.delete("/accounts/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unlink_account(
    account_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    orchestrator: LinkOrchestrator = Depends(get_orchestrator),
):
    await orchestrator.unlink(account_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{platform}/connect/start", response_model=LinkStartResponse)
async def connect_start(
    platform: str,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    orchestrator: LinkOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_settings),
):
    start = await orchestrator.begin_link(platform, user_id)
    response.set_cookie(
        key=session_cookie_name(platform),
        value=start.session_reference,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        max_age=settings.pending_link_ttl,
    )
    return {"auth_url": start.redirect_url}


@router.get("/{platform}/callback")
async def connect_callback(
    platform: str,
    request: Request,
    orchestrator: LinkOrchestrator = Depends(get_orchestrator),
):
    """
    Landing point of the external redirect. The session cookie set by
    connect/start identifies the pending link; it is cleared whatever the outcome.
    """
    session_reference = request.cookies.get(session_cookie_name(platform))
    try:
        summary = await orchestrator.complete_link(platform, dict(request.query_params), session_reference)
        result = JSONResponse({"status": "connected", **summary.model_dump(mode="json")})
    except LinkError as exc:
        logger.info("link_callback_failed", platform=platform, error=exc.kind)
        result = JSONResponse(
            {"status": "failed", "error": exc.kind, "message": exc.detail}, status_code=status_for(exc)
        )
    result.delete_cookie(session_cookie_name(platform))
    return result


@router.get("/{platform}/status", response_model=LinkStatus)
async def link_status(
    platform: str,
    user_id: str = Depends(get_current_user_id),
    orchestrator: LinkOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.link_status(platform, user_id)
