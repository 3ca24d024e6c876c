"""Local-only cloud sync settings."""

import asyncio
import logging
import uuid
from typing import Optional

from pydantic import Field, ValidationError

from yearsync.database import get_setting, set_setting
from yearsync.models import CloudModel, now_ms
from yearsync.preferences.store import PreferenceStore
from yearsync.utils.tasks import create_background_task

logger = logging.getLogger(__name__)

# settings-table key of the sticky opt-out flag
EXPLICITLY_DISABLED_KEY = "sync_explicitly_disabled"


def generate_device_id() -> str:
    return str(uuid.uuid4())


class SyncSettings(CloudModel):
    """
    Per-device sync state. Never written to the cloud document.

    ``device_id`` is provenance only and plays no part in conflict resolution.
    """

    enabled: bool = True
    last_synced_at: Optional[int] = None
    device_id: str = Field(default_factory=generate_device_id)


class SyncSettingsStore(PreferenceStore[SyncSettings]):
    """
    Sync settings plus the user's opt-out switch.

    The opt-out is kept apart from ``enabled`` because it is sticky: it
    survives token changes and only an explicit enable clears it. Whether
    sync can actually run additionally depends on the drive scope.
    """

    key = "sync_settings"

    def __init__(self) -> None:
        super().__init__()
        self._explicitly_disabled = False

    def default(self) -> SyncSettings:
        return SyncSettings()

    def normalize(self, value: SyncSettings) -> SyncSettings:
        if not value.device_id:
            return value.model_copy(update={"device_id": generate_device_id()})
        return value

    def encode(self, value: SyncSettings) -> dict:
        return value.model_dump(by_alias=True, mode="json")

    def decode(self, raw) -> SyncSettings:
        try:
            return SyncSettings.model_validate(raw)
        except ValidationError:
            return SyncSettings()

    async def load(self) -> SyncSettings:
        settings = await super().load()
        # Persist a freshly generated device id so it stays stable
        await self.save()

        flag = await get_setting(EXPLICITLY_DISABLED_KEY)
        self._explicitly_disabled = bool(flag and flag.get("value_plain") == "true")
        return settings

    @property
    def device_id(self) -> str:
        return self._value.device_id

    @property
    def enabled(self) -> bool:
        return self._value.enabled

    @property
    def explicitly_disabled(self) -> bool:
        return self._explicitly_disabled

    @property
    def last_synced_at(self) -> Optional[int]:
        return self._value.last_synced_at

    def set_explicitly_disabled(self, disabled: bool) -> None:
        self._explicitly_disabled = disabled
        if not self._bound:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, sync opt-out not persisted")
            return
        create_background_task(
            set_setting(EXPLICITLY_DISABLED_KEY, "true" if disabled else "false"),
            "save_sync_opt_out",
        )

    def set_enabled(self, enabled: bool) -> SyncSettings:
        return self.set(self.get().model_copy(update={"enabled": enabled}))

    def mark_synced(self, at: Optional[int] = None) -> SyncSettings:
        stamp = at if at is not None else now_ms()
        return self.set(self.get().model_copy(update={"last_synced_at": stamp}))

    def clear_last_synced(self) -> SyncSettings:
        return self.set(self.get().model_copy(update={"last_synced_at": None}))
