"""Build cloud documents from local preferences, and apply them back."""

import logging
from typing import Union

from yearsync.models import ConfigDocumentV1, ConfigDocumentV2, now_ms
from yearsync.preferences import PreferenceStores
from yearsync.preferences.categories import default_categories
from yearsync.sync.migration import migrate

logger = logging.getLogger(__name__)

# Document field -> DisplaySettings field; the names match one to one.
DISPLAY_FIELDS = (
    "timed_event_min_hours",
    "match_description",
    "week_view_enabled",
    "month_scroll_enabled",
    "month_scroll_density",
)


def build_snapshot(stores: PreferenceStores) -> ConfigDocumentV2:
    """Current local state as a v2 document stamped with the current time."""
    display = stores.display.get()
    return ConfigDocumentV2(
        updated_at=now_ms(),
        device_id=stores.sync_settings.device_id,
        filters=stores.filters.get(),
        disabled_calendars=stores.calendars.get(),
        categories=stores.categories.get(),
        **{field: getattr(display, field) for field in DISPLAY_FIELDS},
    )


def apply_document(
    stores: PreferenceStores,
    doc: Union[ConfigDocumentV1, ConfigDocumentV2],
    mark_synced: bool = True,
) -> ConfigDocumentV2:
    """
    Replace local preferences with the contents of a document.

    Uses the stores' raw ``set`` so applying remote state does not schedule a
    write back. Display values missing from the document are left alone.
    With ``mark_synced`` off the sync timestamp is left for the caller to set
    once the document has actually been stored remotely.
    """
    current = migrate(doc)

    stores.filters.set(current.filters)
    stores.calendars.set(current.disabled_calendars)
    stores.categories.set(current.categories)

    display_changes = {
        field: getattr(current, field)
        for field in DISPLAY_FIELDS
        if getattr(current, field) is not None
    }
    if display_changes:
        stores.display.set(stores.display.get().model_copy(update=display_changes))

    if mark_synced:
        stores.sync_settings.mark_synced()
    logger.info(
        f"Applied cloud config from device {current.device_id}: "
        f"{len(current.filters)} filters, {len(current.categories)} categories, "
        f"{len(current.disabled_calendars)} hidden calendars"
    )
    return current


def reset_stores(stores: PreferenceStores) -> None:
    """Put every synced store back to factory defaults."""
    stores.filters.set([])
    stores.calendars.set([])
    stores.categories.set(default_categories())
    stores.display.reset()
