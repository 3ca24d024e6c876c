"""Access token handoff endpoints."""

import logging

from fastapi import APIRouter
from pydantic import BaseModel

from yearsync.auth import get_auth_state
from yearsync.sync.orchestrator import get_sync_orchestrator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


class TokenRequest(BaseModel):
    access_token: str
    # Space-separated scopes as returned by the token endpoint
    scope: str = ""


class TokenResponse(BaseModel):
    authenticated: bool
    has_drive_access: bool


@router.put("/token", response_model=TokenResponse)
async def store_token(request: TokenRequest):
    """Hand over the access token obtained by the sign-in flow."""
    auth = get_auth_state()
    auth.store_token(request.access_token, request.scope)

    try:
        get_sync_orchestrator().handle_access_granted()
    except RuntimeError:
        logger.debug("Token stored before sync initialization")

    return TokenResponse(authenticated=True, has_drive_access=auth.has_drive_scope())


@router.delete("/token", response_model=TokenResponse)
async def clear_token():
    """Forget the access token (sign-out)."""
    get_auth_state().clear()
    return TokenResponse(authenticated=False, has_drive_access=False)
