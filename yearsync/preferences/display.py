"""Display settings store."""

from pydantic import ValidationError

from yearsync.models import CloudModel
from yearsync.preferences.store import PreferenceStore

MIN_TIMED_EVENT_HOURS = 0.0
MAX_TIMED_EVENT_HOURS = 24.0


class DisplaySettings(CloudModel):
    # Timed events shorter than this many hours are hidden; 0 shows all.
    timed_event_min_hours: float = 3.0
    match_description: bool = False
    week_view_enabled: bool = False
    month_scroll_enabled: bool = False
    # Row height in pixels
    month_scroll_density: float = 60.0


class DisplaySettingsStore(PreferenceStore[DisplaySettings]):
    key = "display_settings"

    def default(self) -> DisplaySettings:
        return DisplaySettings()

    def normalize(self, value: DisplaySettings) -> DisplaySettings:
        hours = min(MAX_TIMED_EVENT_HOURS, max(MIN_TIMED_EVENT_HOURS, value.timed_event_min_hours))
        return value.model_copy(update={"timed_event_min_hours": hours})

    def encode(self, value: DisplaySettings) -> dict:
        return value.to_wire()

    def decode(self, raw) -> DisplaySettings:
        try:
            return DisplaySettings.model_validate(raw)
        except ValidationError:
            return DisplaySettings()

    def update_settings(self, **changes) -> DisplaySettings:
        """Change one or more display fields as a user edit."""
        return self.update(self.get().model_copy(update=changes))
