"""
Conflict resolution between a local snapshot and the remote document.

Two strategies are applied per field:

* list-level last-write-wins: the whole value comes from whichever document
  has the later root ``updated_at`` (ties go to remote). Used for filters,
  disabled calendars and display settings, so deletions made on one device
  propagate instead of being resurrected by a union. The cost is that
  unrelated additions on the losing side are dropped.
* item-level last-write-wins: categories are matched by ``id`` and each keeps
  the copy with the later per-item ``updated_at``. There are no tombstones, so
  a category deleted on one device comes back if another device still has it.
"""

from typing import Union

from yearsync.models import CloudCategory, ConfigDocumentV1, ConfigDocumentV2, now_ms
from yearsync.preferences.categories import DEFAULT_CATEGORIES
from yearsync.sync.migration import migrate

LIST_LWW_FIELDS = (
    "filters",
    "disabled_calendars",
    "timed_event_min_hours",
    "match_description",
    "week_view_enabled",
    "month_scroll_enabled",
    "month_scroll_density",
)
ITEM_LWW_FIELDS = ("categories",)

_CATEGORY_CONTENT_FIELDS = ("label", "color", "keywords", "match_mode")


def _is_stock_category(category: CloudCategory) -> bool:
    for default in DEFAULT_CATEGORIES:
        if default["id"] == category.id:
            return bool(category.is_default) and all(
                getattr(category, field) == default[field] for field in _CATEGORY_CONTENT_FIELDS
            )
    return False


def is_empty_document(doc: ConfigDocumentV2) -> bool:
    """
    True when a document holds nothing but factory defaults.

    That is the state of a device that has never been customized, whose
    snapshot must not win over an established remote document.
    """
    categories = doc.categories
    return (
        not doc.filters
        and not doc.disabled_calendars
        and len(categories) == len(DEFAULT_CATEGORIES)
        and {category.id for category in categories} == {default["id"] for default in DEFAULT_CATEGORIES}
        and all(_is_stock_category(category) for category in categories)
    )


def merge_categories(
    local: list[CloudCategory],
    remote: list[CloudCategory],
) -> list[CloudCategory]:
    merged: dict[str, CloudCategory] = {category.id: category for category in remote}
    for category in local:
        existing = merged.get(category.id)
        if existing is None or category.updated_at > existing.updated_at:
            merged[category.id] = category
    return list(merged.values())


def merge_documents(
    local: Union[ConfigDocumentV1, ConfigDocumentV2],
    remote: Union[ConfigDocumentV1, ConfigDocumentV2],
    device_id: str,
) -> ConfigDocumentV2:
    """Combine two documents into one stamped with ``device_id`` and the current time."""
    local_v2 = migrate(local)
    remote_v2 = migrate(remote)
    stamp = {"updated_at": now_ms(), "device_id": device_id}

    if is_empty_document(local_v2):
        return remote_v2.model_copy(update=stamp)

    newer = remote_v2 if remote_v2.updated_at >= local_v2.updated_at else local_v2
    merged = {field: getattr(newer, field) for field in LIST_LWW_FIELDS}
    merged["categories"] = merge_categories(local_v2.categories, remote_v2.categories)

    return ConfigDocumentV2(**merged, **stamp)
