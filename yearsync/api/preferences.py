"""Local preference API endpoints.

Every mutation here goes through a store's user-facing mutators, which notify
the sync orchestrator so the change reaches the cloud after the debounce.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from yearsync.models import CloudCategory, EventFilter
from yearsync.preferences import PreferenceStores, get_preference_stores
from yearsync.preferences.categories import CategoryError, CategoryInput
from yearsync.preferences.display import DisplaySettings

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/preferences", tags=["preferences"])


class FilterRequest(BaseModel):
    pattern: str


class CalendarVisibilityRequest(BaseModel):
    enabled: bool


class DisplaySettingsUpdate(BaseModel):
    """Partial update; omitted fields keep their value."""
    timed_event_min_hours: Optional[float] = Field(default=None, ge=0, le=24)
    match_description: Optional[bool] = None
    week_view_enabled: Optional[bool] = None
    month_scroll_enabled: Optional[bool] = None
    month_scroll_density: Optional[float] = Field(default=None, gt=0)


def _category_error(e: CategoryError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


@router.get("/filters", response_model=list[EventFilter])
async def list_filters(stores: PreferenceStores = Depends(get_preference_stores)):
    """List hidden-event filters."""
    return stores.filters.get()


@router.post("/filters", response_model=EventFilter)
async def add_filter(
    request: FilterRequest,
    stores: PreferenceStores = Depends(get_preference_stores),
):
    """Add a filter. A duplicate pattern returns the existing filter."""
    new_filter = stores.filters.add_filter(request.pattern)
    if new_filter is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Filter pattern is required",
        )
    return new_filter


@router.delete("/filters/{filter_id}", response_model=list[EventFilter])
async def remove_filter(
    filter_id: str,
    stores: PreferenceStores = Depends(get_preference_stores),
):
    return stores.filters.remove_filter(filter_id)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


@router.get("/categories", response_model=list[CloudCategory])
async def list_categories(stores: PreferenceStores = Depends(get_preference_stores)):
    return stores.categories.get()


@router.get("/categories/removed-defaults", response_model=list[CloudCategory])
async def list_removed_defaults(stores: PreferenceStores = Depends(get_preference_stores)):
    """Default categories the user removed and could restore."""
    return stores.categories.get_removed_defaults()


@router.post("/categories", response_model=CloudCategory)
async def add_category(
    request: CategoryInput,
    stores: PreferenceStores = Depends(get_preference_stores),
):
    try:
        return stores.categories.add_category(request)
    except CategoryError as e:
        raise _category_error(e)


@router.put("/categories/{category_id}", response_model=CloudCategory)
async def update_category(
    category_id: str,
    request: CategoryInput,
    stores: PreferenceStores = Depends(get_preference_stores),
):
    try:
        return stores.categories.update_category(category_id, request)
    except CategoryError as e:
        raise _category_error(e)


@router.delete("/categories/{category_id}", response_model=list[CloudCategory])
async def remove_category(
    category_id: str,
    stores: PreferenceStores = Depends(get_preference_stores),
):
    return stores.categories.remove_category(category_id)


@router.post("/categories/reset", response_model=list[CloudCategory])
async def reset_categories(stores: PreferenceStores = Depends(get_preference_stores)):
    """Replace all categories with the default set."""
    logger.info("Resetting categories to defaults")
    return stores.categories.reset_to_defaults()


@router.post("/categories/{category_id}/restore", response_model=CloudCategory)
async def restore_default_category(
    category_id: str,
    stores: PreferenceStores = Depends(get_preference_stores),
):
    try:
        return stores.categories.restore_default(category_id)
    except CategoryError as e:
        raise _category_error(e)


# ---------------------------------------------------------------------------
# Calendars
# ---------------------------------------------------------------------------


@router.get("/calendars/disabled", response_model=list[str])
async def list_disabled_calendars(stores: PreferenceStores = Depends(get_preference_stores)):
    """Ids of calendars hidden from the year view."""
    return stores.calendars.get()


@router.put("/calendars/{calendar_id}", response_model=list[str])
async def set_calendar_visibility(
    calendar_id: str,
    request: CalendarVisibilityRequest,
    stores: PreferenceStores = Depends(get_preference_stores),
):
    if request.enabled:
        return stores.calendars.enable_calendar(calendar_id)
    return stores.calendars.disable_calendar(calendar_id)


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------


@router.get("/display", response_model=DisplaySettings)
async def get_display_settings(stores: PreferenceStores = Depends(get_preference_stores)):
    return stores.display.get()


@router.put("/display", response_model=DisplaySettings)
async def update_display_settings(
    request: DisplaySettingsUpdate,
    stores: PreferenceStores = Depends(get_preference_stores),
):
    changes = request.model_dump(exclude_none=True)
    if not changes:
        return stores.display.get()
    return stores.display.update_settings(**changes)
