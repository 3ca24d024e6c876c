"""Cloud sync status and control API endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from yearsync.api.limits import CLOUD_DELETE_LIMIT, limiter
from yearsync.database import get_sync_log
from yearsync.sync.orchestrator import SyncOrchestrator, SyncOutcome, get_sync_orchestrator

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sync", tags=["sync"])


def require_orchestrator() -> SyncOrchestrator:
    """Dependency that fails with 503 until startup has wired the orchestrator."""
    try:
        return get_sync_orchestrator()
    except RuntimeError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sync is not initialized",
        )


class SyncStatusResponse(BaseModel):
    """Cloud sync state for this device."""
    status: str
    last_error: Optional[str] = None
    last_synced_at: Optional[int] = None
    device_id: str
    enabled: bool
    has_drive_access: bool
    has_pending_changes: bool
    online: bool


class ConnectivityRequest(BaseModel):
    online: bool


class SyncLogEntry(BaseModel):
    """Sync audit log entry."""
    id: int
    action: str
    status: str
    details: Optional[str] = None
    created_at: str


class SyncLogResponse(BaseModel):
    entries: list[SyncLogEntry]


def _status_response(orchestrator: SyncOrchestrator) -> SyncStatusResponse:
    settings = orchestrator.stores.sync_settings
    return SyncStatusResponse(
        status=orchestrator.get_status().value,
        last_error=orchestrator.get_last_sync_error(),
        last_synced_at=settings.last_synced_at,
        device_id=settings.device_id,
        enabled=not settings.explicitly_disabled,
        has_drive_access=orchestrator.auth.has_drive_scope(),
        has_pending_changes=orchestrator.has_pending_changes,
        online=orchestrator.connectivity.is_online,
    )


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(orchestrator: SyncOrchestrator = Depends(require_orchestrator)):
    """Get cloud sync status for this device."""
    return _status_response(orchestrator)


@router.post("/enable", response_model=SyncOutcome)
async def enable_sync(orchestrator: SyncOrchestrator = Depends(require_orchestrator)):
    """Opt back in to cloud sync and restore from the cloud."""
    return await orchestrator.enable_sync()


@router.post("/disable", response_model=SyncStatusResponse)
async def disable_sync(orchestrator: SyncOrchestrator = Depends(require_orchestrator)):
    """Opt out of cloud sync. Local preferences are kept."""
    orchestrator.disable_sync()
    return _status_response(orchestrator)


@router.post("/load", response_model=SyncOutcome)
async def load_from_cloud(orchestrator: SyncOrchestrator = Depends(require_orchestrator)):
    """Restore local preferences from the cloud document."""
    return await orchestrator.load_from_cloud()


@router.post("/retry", response_model=SyncOutcome)
async def retry_sync(orchestrator: SyncOrchestrator = Depends(require_orchestrator)):
    """Clear the last error and load again."""
    return await orchestrator.retry()


@router.post("/clear-error", response_model=SyncStatusResponse)
async def clear_sync_error(orchestrator: SyncOrchestrator = Depends(require_orchestrator)):
    """Dismiss the current sync error."""
    orchestrator.clear_sync_error()
    return _status_response(orchestrator)


@router.delete("/cloud-data", response_model=SyncOutcome)
@limiter.limit(CLOUD_DELETE_LIMIT)
async def delete_cloud_data(
    request: Request,
    orchestrator: SyncOrchestrator = Depends(require_orchestrator),
):
    """Delete the cloud document and reset local preferences to defaults."""
    outcome = await orchestrator.delete_cloud_data()
    if outcome.status == "error":
        logger.warning(f"Cloud data deletion failed: {outcome.message}")
    return outcome


@router.post("/connectivity", response_model=SyncStatusResponse)
async def set_connectivity(
    request: ConnectivityRequest,
    orchestrator: SyncOrchestrator = Depends(require_orchestrator),
):
    """Report a connectivity change from the client."""
    orchestrator.connectivity.set_online(request.online)
    return _status_response(orchestrator)


@router.get("/log", response_model=SyncLogResponse)
async def get_log(limit: int = 50):
    """Get recent cloud sync activity, newest first."""
    rows = await get_sync_log(limit=max(1, min(limit, 500)))
    return SyncLogResponse(
        entries=[
            SyncLogEntry(
                id=row["id"],
                action=row["action"],
                status=row["status"],
                details=row["details"],
                created_at=str(row["created_at"]),
            )
            for row in rows
        ]
    )
