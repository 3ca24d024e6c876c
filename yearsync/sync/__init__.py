"""Cloud sync module."""

from yearsync.sync.connectivity import ConnectivityMonitor, get_connectivity_monitor
from yearsync.sync.drive import DriveDocumentClient, DriveError, DriveResult
from yearsync.sync.merge import merge_documents
from yearsync.sync.migration import migrate
from yearsync.sync.orchestrator import (
    SyncOrchestrator,
    SyncOutcome,
    SyncStatus,
    get_sync_orchestrator,
    setup_sync_orchestrator,
    shutdown_sync_orchestrator,
)

__all__ = [
    "ConnectivityMonitor",
    "get_connectivity_monitor",
    "DriveDocumentClient",
    "DriveError",
    "DriveResult",
    "merge_documents",
    "migrate",
    "SyncOrchestrator",
    "SyncOutcome",
    "SyncStatus",
    "get_sync_orchestrator",
    "setup_sync_orchestrator",
    "shutdown_sync_orchestrator",
]
