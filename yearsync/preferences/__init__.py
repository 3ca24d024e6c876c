"""Local preference stores."""

import logging
from typing import Optional

from yearsync.preferences.calendars import CalendarVisibilityStore
from yearsync.preferences.categories import CategoryStore
from yearsync.preferences.display import DisplaySettingsStore
from yearsync.preferences.filters import FilterStore
from yearsync.preferences.store import ChangeListener, PreferenceStore
from yearsync.preferences.sync_settings import SyncSettingsStore

logger = logging.getLogger(__name__)


class PreferenceStores:
    """The set of stores one device keeps, plus its sync settings."""

    def __init__(self) -> None:
        self.filters = FilterStore()
        self.categories = CategoryStore()
        self.calendars = CalendarVisibilityStore()
        self.display = DisplaySettingsStore()
        self.sync_settings = SyncSettingsStore()

    @property
    def synced(self) -> tuple[PreferenceStore, ...]:
        """Stores whose contents are mirrored in the cloud document."""
        return (self.filters, self.categories, self.calendars, self.display)

    def subscribe(self, listener: ChangeListener) -> None:
        for store in self.synced:
            store.subscribe(listener)

    def unsubscribe(self, listener: ChangeListener) -> None:
        for store in self.synced:
            store.unsubscribe(listener)

    async def load(self) -> None:
        for store in (*self.synced, self.sync_settings):
            await store.load()
        logger.info(f"Preferences loaded for device {self.sync_settings.device_id}")


_stores: Optional[PreferenceStores] = None


def get_preference_stores() -> PreferenceStores:
    """Get the process-wide preference stores, creating them if necessary."""
    global _stores
    if _stores is None:
        _stores = PreferenceStores()
    return _stores


async def load_preference_stores() -> PreferenceStores:
    stores = get_preference_stores()
    await stores.load()
    return stores


def reset_preference_stores() -> None:
    """Drop the process-wide stores (used on shutdown and in tests)."""
    global _stores
    _stores = None


__all__ = [
    "PreferenceStores",
    "get_preference_stores",
    "load_preference_stores",
    "reset_preference_stores",
]
