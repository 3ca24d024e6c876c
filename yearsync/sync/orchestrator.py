"""
Cloud sync orchestrator.

Sync strategy: the cloud document is the shared copy, the local stores are
the working state.

- On app start / enabling sync: read the document once and apply it locally.
  This path never writes back.
- On every local change: debounce, then replace the whole document with a
  fresh snapshot of local state.
- Offline: changes stay local and are flagged; reconnecting pushes them.
- When a read finds a remote document while local changes are still pending
  (made offline, during the read, or after a failed write), the two are
  merged, the result is applied locally and written back.

Nothing here raises to callers: failures become the ``error`` status plus a
message, and the local stores are only touched after a successful read.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Literal, Optional

from pydantic import BaseModel

from yearsync.auth import AuthState
from yearsync.config import get_settings
from yearsync.preferences import PreferenceStores
from yearsync.sync.connectivity import ONLINE, ConnectivityMonitor
from yearsync.sync.drive import DriveDocumentClient
from yearsync.sync.merge import merge_documents
from yearsync.sync.migration import migrate
from yearsync.sync.snapshot import apply_document, build_snapshot, reset_stores
from yearsync.utils.tasks import create_background_task

logger = logging.getLogger(__name__)

AuditHook = Callable[[str, str, Optional[str]], Awaitable[None]]

SkipReason = Literal["disabled", "needs-consent", "already-syncing", "offline"]


class SyncStatus(str, Enum):
    """What the UI shows for cloud sync."""

    DISABLED = "disabled"
    NEEDS_CONSENT = "needs-consent"
    SYNCING = "syncing"
    OFFLINE = "offline"
    ERROR = "error"
    SYNCED = "synced"


class SyncOutcome(BaseModel):
    """Result of a public sync operation."""

    status: Literal["success", "skipped", "error"]
    reason: Optional[SkipReason] = None
    message: Optional[str] = None

    @classmethod
    def success(cls) -> "SyncOutcome":
        return cls(status="success")

    @classmethod
    def skipped(cls, reason: SkipReason) -> "SyncOutcome":
        return cls(status="skipped", reason=reason)

    @classmethod
    def error(cls, message: str) -> "SyncOutcome":
        return cls(status="error", message=message)


class SyncOrchestrator:
    """Schedules reads and writes of the cloud document for one device."""

    def __init__(
        self,
        stores: PreferenceStores,
        client: DriveDocumentClient,
        auth: AuthState,
        connectivity: ConnectivityMonitor,
        debounce_seconds: Optional[float] = None,
        audit: Optional[AuditHook] = None,
    ):
        self.stores = stores
        self.client = client
        self.auth = auth
        self.connectivity = connectivity
        self.debounce_seconds = (
            get_settings().sync_debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self.audit = audit

        # is_syncing guards the read path, is_writing the write path
        self.is_syncing = False
        self.is_writing = False
        self.needs_another_write = False
        self.has_pending_changes = False
        self.last_error: Optional[str] = None

        self._loaded = False
        self._debounce_handle: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()
        self._initialized = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self) -> None:
        """Start listening for reconnects and local preference changes."""
        if self._initialized:
            return
        self.connectivity.add_listener(ONLINE, self.handle_online)
        self.stores.subscribe(self.schedule_sync_to_cloud)
        self._initialized = True

    def teardown(self) -> None:
        """Stop listening and drop any pending debounced write."""
        self.connectivity.remove_listener(ONLINE, self.handle_online)
        self.stores.unsubscribe(self.schedule_sync_to_cloud)
        self._cancel_debounce()
        self._initialized = False

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def is_sync_enabled(self) -> bool:
        """Opted in and allowed to use the drive scope."""
        return not self.stores.sync_settings.explicitly_disabled and self.auth.has_drive_scope()

    def get_status(self) -> SyncStatus:
        if self.stores.sync_settings.explicitly_disabled:
            return SyncStatus.DISABLED
        if not self.auth.has_drive_scope():
            return SyncStatus.NEEDS_CONSENT
        if self.is_syncing or self.is_writing:
            return SyncStatus.SYNCING
        if not self.connectivity.is_online:
            return SyncStatus.OFFLINE
        if self.last_error:
            return SyncStatus.ERROR
        return SyncStatus.SYNCED

    def get_last_sync_error(self) -> Optional[str]:
        return self.last_error

    def clear_sync_error(self) -> None:
        self.last_error = None

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def _skip_reason(self) -> Optional[SkipReason]:
        if self.stores.sync_settings.explicitly_disabled:
            return "disabled"
        if not self.auth.has_drive_scope():
            return "needs-consent"
        if self.is_syncing or self.is_writing:
            return "already-syncing"
        if not self.connectivity.is_online:
            return "offline"
        return None

    async def load_from_cloud(self) -> SyncOutcome:
        """Restore local preferences from the cloud document."""
        reason = self._skip_reason()
        if reason is not None:
            logger.info(f"Cloud load skipped: {reason}")
            return SyncOutcome.skipped(reason)

        self.is_syncing = True
        try:
            result = await self.client.read()
            if not result.success:
                return await self._fail("load", result.error.message or "Failed to read from Drive")

            if result.data is None:
                logger.info("No cloud config yet, keeping local settings")
                if self.has_pending_changes:
                    self.schedule_sync_to_cloud()
                detail = "no remote document"
            elif self.has_pending_changes:
                # Both sides may have moved on; reconcile before writing back
                merged = merge_documents(
                    build_snapshot(self.stores),
                    migrate(result.data),
                    self.stores.sync_settings.device_id,
                )
                # Not synced until the merged document is written
                apply_document(self.stores, merged, mark_synced=False)
                self.schedule_sync_to_cloud()
                detail = "merged with pending local changes"
            else:
                apply_document(self.stores, result.data)
                detail = f"applied version {result.data.version} document"

            self._loaded = True
            self.last_error = None
            await self._record("load", "success", detail)
            return SyncOutcome.success()
        except Exception as e:
            logger.exception(f"Cloud load failed: {e}")
            return await self._fail("load", str(e) or "Sync failed")
        finally:
            self.is_syncing = False

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def schedule_sync_to_cloud(self) -> None:
        """
        Push local state to the cloud after a quiet period.

        Every call restarts the debounce window, so a burst of edits becomes
        one write. A call that arrives while a write is in flight is queued as
        a single follow-up write instead of starting a concurrent one.
        """
        if not self.is_sync_enabled():
            return

        self._cancel_debounce()

        if self.is_syncing:
            self.has_pending_changes = True

        if self.is_writing:
            self.needs_another_write = True
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, cloud write left pending")
            self.has_pending_changes = True
            return

        self._debounce_handle = loop.call_later(self.debounce_seconds, self._on_debounce_fired)

    def _on_debounce_fired(self) -> None:
        self._debounce_handle = None

        if not self.connectivity.is_online:
            logger.info("Offline, cloud write deferred until reconnect")
            self.has_pending_changes = True
            return
        if self.is_syncing:
            # The running load will merge and reschedule
            self.has_pending_changes = True
            return

        self._spawn(self._perform_write(), "cloud_sync_write")

    async def _perform_write(self) -> None:
        if self.is_writing:
            self.needs_another_write = True
            return

        self.is_writing = True
        self.needs_another_write = False
        self.has_pending_changes = False

        try:
            snapshot = build_snapshot(self.stores)
            result = await self.client.write(snapshot)
            if not result.success:
                self.has_pending_changes = True
                message = result.error.message or "Failed to sync"
                self.last_error = message
                logger.warning(f"Cloud sync failed: {message}")
                await self._record("write", "error", message)
            else:
                self.last_error = None
                self.stores.sync_settings.mark_synced()
                await self._record("write", "success", None)
        except Exception as e:
            self.has_pending_changes = True
            self.last_error = str(e) or "Failed to sync"
            logger.exception(f"Cloud sync failed: {e}")
            await self._record("write", "error", self.last_error)
        finally:
            self.is_writing = False
            if self.needs_another_write:
                self.needs_another_write = False
                self.schedule_sync_to_cloud()

    def handle_online(self) -> None:
        """Connectivity came back."""
        self.catch_up()

    def handle_access_granted(self) -> None:
        """A new token arrived."""
        self.catch_up()

    def catch_up(self) -> bool:
        """
        Finish the initial load, or push pending edits once it is done.

        Returns True when work was started or scheduled.
        """
        if not self.is_sync_enabled() or not self.connectivity.is_online:
            return False
        if self.is_syncing or self.is_writing or self.has_scheduled_write:
            return False
        if not self._loaded:
            self._spawn(self.load_from_cloud(), "cloud_sync_load")
            return True
        if self.has_pending_changes:
            self.schedule_sync_to_cloud()
            return True
        return False

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def enable_sync(self) -> SyncOutcome:
        """Clear the opt-out flag and restore from the cloud."""
        self.stores.sync_settings.set_explicitly_disabled(False)
        self.stores.sync_settings.set_enabled(True)
        logger.info("Cloud sync enabled")
        return await self.load_from_cloud()

    def disable_sync(self) -> None:
        """Opt out. Local preferences are kept; nothing more is written."""
        self.stores.sync_settings.set_explicitly_disabled(True)
        self.stores.sync_settings.set_enabled(False)
        self.stores.sync_settings.clear_last_synced()
        self._drop_pending_work()
        self.last_error = None
        self._loaded = False
        logger.info("Cloud sync disabled")

    async def retry(self) -> SyncOutcome:
        """Manual retry after an error."""
        self.clear_sync_error()
        return await self.load_from_cloud()

    async def delete_cloud_data(self) -> SyncOutcome:
        """Delete the cloud document and reset local preferences to defaults."""
        if not self.connectivity.is_online:
            message = "Cannot delete cloud data while offline"
            self.last_error = message
            return SyncOutcome.error(message)

        self._drop_pending_work()
        try:
            result = await self.client.delete()
            if not result.success:
                return await self._fail("delete", result.error.message or "Failed to delete cloud data")

            reset_stores(self.stores)
            self.stores.sync_settings.clear_last_synced()
            self.last_error = None
            await self._record("delete", "success", None)
            logger.info("Cloud data deleted and local preferences reset")
            return SyncOutcome.success()
        except Exception as e:
            logger.exception(f"Deleting cloud data failed: {e}")
            return await self._fail("delete", str(e) or "Failed to delete cloud data")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def has_scheduled_write(self) -> bool:
        return self._debounce_handle is not None

    async def wait_for_idle(self) -> None:
        """Wait until no debounced write is armed and no sync task is running."""
        while self._debounce_handle is not None or self._tasks:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            else:
                await asyncio.sleep(min(self.debounce_seconds, 0.05) or 0.001)

    def _cancel_debounce(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    def _drop_pending_work(self) -> None:
        self._cancel_debounce()
        self.needs_another_write = False
        self.has_pending_changes = False

    def _spawn(self, coro, name: str) -> None:
        task = create_background_task(coro, name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _fail(self, action: str, message: str) -> SyncOutcome:
        self.last_error = message
        logger.warning(f"Cloud {action} failed: {message}")
        await self._record(action, "error", message)
        return SyncOutcome.error(message)

    async def _record(self, action: str, status: str, details: Optional[str]) -> None:
        if self.audit is None:
            return
        try:
            await self.audit(action, status, details)
        except Exception as e:
            logger.exception(f"Could not record sync {action} in audit log: {e}")


_orchestrator: Optional[SyncOrchestrator] = None


def setup_sync_orchestrator(
    stores: PreferenceStores,
    auth: AuthState,
    connectivity: ConnectivityMonitor,
    client: Optional[DriveDocumentClient] = None,
    audit: Optional[AuditHook] = None,
) -> SyncOrchestrator:
    """Create the process-wide orchestrator and start its listeners."""
    global _orchestrator

    if client is None:
        client = DriveDocumentClient(auth.get_access_token)
    _orchestrator = SyncOrchestrator(stores, client, auth, connectivity, audit=audit)
    _orchestrator.init()
    return _orchestrator


def get_sync_orchestrator() -> SyncOrchestrator:
    if _orchestrator is None:
        raise RuntimeError("Sync orchestrator not initialized")
    return _orchestrator


def shutdown_sync_orchestrator() -> None:
    global _orchestrator

    if _orchestrator is not None:
        _orchestrator.teardown()
        _orchestrator = None
