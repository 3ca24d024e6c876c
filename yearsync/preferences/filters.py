"""Hidden-event filter store."""

import uuid
from typing import Optional

from yearsync.models import EventFilter, now_ms
from yearsync.preferences.store import PreferenceStore, decode_model_list


class FilterStore(PreferenceStore[list[EventFilter]]):
    """Title-substring filters; patterns are unique case-insensitively."""

    key = "filters"

    def default(self) -> list[EventFilter]:
        return []

    def normalize(self, value: list[EventFilter]) -> list[EventFilter]:
        cleaned = []
        for entry in value:
            pattern = entry.pattern.strip()
            if pattern:
                cleaned.append(entry.model_copy(update={"pattern": pattern}))
        return cleaned

    def encode(self, value: list[EventFilter]) -> list[dict]:
        return [entry.to_wire() for entry in value]

    def decode(self, raw) -> list[EventFilter]:
        return decode_model_list(raw, EventFilter)

    def add_filter(self, pattern: str) -> Optional[EventFilter]:
        """Add a filter, returning the existing one for a duplicate pattern."""
        trimmed = pattern.strip()
        if not trimmed:
            return None

        filters = self.get()
        normalized = trimmed.lower()
        for existing in filters:
            if existing.pattern.lower() == normalized:
                return existing

        new_filter = EventFilter(id=str(uuid.uuid4()), pattern=trimmed, created_at=now_ms())
        self.update([*filters, new_filter])
        return new_filter

    def remove_filter(self, filter_id: str) -> list[EventFilter]:
        return self.update([entry for entry in self.get() if entry.id != filter_id])

    def clear(self) -> list[EventFilter]:
        return self.update([])
