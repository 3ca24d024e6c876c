"""Calendar visibility store (ids of calendars hidden from the year view)."""

from yearsync.preferences.store import PreferenceStore


class CalendarVisibilityStore(PreferenceStore[list[str]]):
    key = "disabled_calendars"

    def default(self) -> list[str]:
        return []

    def normalize(self, value: list[str]) -> list[str]:
        seen = []
        for entry in value:
            if not isinstance(entry, str):
                continue
            trimmed = entry.strip()
            if trimmed and trimmed not in seen:
                seen.append(trimmed)
        return seen

    def decode(self, raw) -> list[str]:
        return raw if isinstance(raw, list) else []

    def disable_calendar(self, calendar_id: str) -> list[str]:
        existing = self.get()
        if calendar_id in existing:
            return existing
        return self.update([*existing, calendar_id])

    def enable_calendar(self, calendar_id: str) -> list[str]:
        existing = self.get()
        if calendar_id not in existing:
            return existing
        return self.update([entry for entry in existing if entry != calendar_id])
