"""Schema migration for cloud config documents."""

from typing import Optional, Union

from yearsync.models import CloudCategory, ConfigDocumentV1, ConfigDocumentV2, now_ms
from yearsync.preferences.categories import DEFAULT_CATEGORY_IDS, make_default_category

# showTimedEvents=False used to hide short timed events; 3 hours is the
# equivalent threshold in the numeric setting.
DEFAULT_TIMED_EVENT_MIN_HOURS = 3.0
SHOW_ALL_TIMED_EVENTS = 0.0


def timed_event_hours_from_flag(show_timed_events: Optional[bool]) -> Optional[float]:
    if show_timed_events is None:
        return None
    return SHOW_ALL_TIMED_EVENTS if show_timed_events else DEFAULT_TIMED_EVENT_MIN_HOURS


def migrate_v1_to_v2(doc: ConfigDocumentV1) -> ConfigDocumentV2:
    """
    Convert a legacy document to the unified category shape.

    Defaults not listed in ``disabled_built_in_categories`` become categories
    flagged ``is_default``; v1 never tracked per-default timestamps, so they
    are stamped with the current time. Custom categories keep their own.
    """
    now = now_ms()
    disabled = set(doc.disabled_built_in_categories)

    categories: list[CloudCategory] = [
        make_default_category(category_id, now)
        for category_id in DEFAULT_CATEGORY_IDS
        if category_id not in disabled
    ]
    for custom in doc.custom_categories:
        categories.append(CloudCategory(**custom.model_dump(), is_default=False))

    return ConfigDocumentV2(
        updated_at=doc.updated_at,
        device_id=doc.device_id,
        filters=doc.filters,
        disabled_calendars=doc.disabled_calendars,
        categories=categories,
        timed_event_min_hours=timed_event_hours_from_flag(doc.show_timed_events),
        match_description=doc.match_description,
        week_view_enabled=doc.week_view_enabled,
        month_scroll_enabled=doc.month_scroll_enabled,
        month_scroll_density=doc.month_scroll_density,
    )


def migrate(doc: Union[ConfigDocumentV1, ConfigDocumentV2]) -> ConfigDocumentV2:
    """Bring any supported document version up to the current shape."""
    if isinstance(doc, ConfigDocumentV2):
        return doc
    return migrate_v1_to_v2(doc)
