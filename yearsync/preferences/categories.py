"""
Category store.

Holds both the shipped default categories and user-created ones in a single
list. Each entry carries its own ``updated_at`` so concurrent edits to
different categories on different devices can be merged item by item.
"""

import re
import uuid
from typing import Optional

from pydantic import BaseModel

from yearsync.models import CategoryMatchMode, CloudCategory, now_ms
from yearsync.preferences.store import PreferenceStore, decode_model_list

CUSTOM_CATEGORY_PREFIX = "custom-"
MAX_LABEL_LENGTH = 32
RESERVED_LABEL = "uncategorized"

_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")

# Factory category set, the target of "reset to defaults"
DEFAULT_CATEGORIES: list[dict] = [
    {
        "id": "birthdays",
        "label": "Birthdays",
        "color": "#F59E0B",
        "keywords": ["birthday", "bday", "b-day"],
        "match_mode": "any",
    },
    {
        "id": "family",
        "label": "Family",
        "color": "#3B82F6",
        "keywords": ["family", "kids", "kid", "mom", "dad", "anniversary", "wedding", "reunion"],
        "match_mode": "any",
    },
    {
        "id": "holidays",
        "label": "Holidays/Trips",
        "color": "#F97316",
        "keywords": ["flight", "hotel", "stay at", "vacation", "holiday", "trip", "travel", "airport"],
        "match_mode": "any",
    },
    {
        "id": "races",
        "label": "Races",
        "color": "#10B981",
        "keywords": ["race", "marathon", "run", "hike", "summit", "climb", "trek", "5k", "10k"],
        "match_mode": "any",
    },
    {
        "id": "work",
        "label": "Work",
        "color": "#8B5CF6",
        "keywords": ["meeting", "call", "1:1", "sync", "review", "standup", "interview", "retro"],
        "match_mode": "any",
    },
]

DEFAULT_CATEGORY_IDS = [entry["id"] for entry in DEFAULT_CATEGORIES]


class CategoryError(ValueError):
    """A category edit was rejected."""


class CategoryInput(BaseModel):
    """User-supplied fields for creating or editing a category."""

    label: str
    color: str
    keywords: list[str]
    match_mode: CategoryMatchMode = "any"


def make_default_category(category_id: str, now: Optional[int] = None) -> CloudCategory:
    """Build a fresh copy of one default category stamped with ``now``."""
    stamp = now if now is not None else now_ms()
    for entry in DEFAULT_CATEGORIES:
        if entry["id"] == category_id:
            return CloudCategory(**entry, created_at=stamp, updated_at=stamp, is_default=True)
    raise KeyError(category_id)


def default_categories(now: Optional[int] = None) -> list[CloudCategory]:
    """The full default category set, every entry stamped with the same time."""
    stamp = now if now is not None else now_ms()
    return [make_default_category(category_id, stamp) for category_id in DEFAULT_CATEGORY_IDS]


def is_valid_color(color: str) -> bool:
    return bool(_COLOR_RE.match(color or ""))


def normalize_keywords(keywords: list[str]) -> list[str]:
    """Trim keywords and drop blanks and case-insensitive duplicates."""
    cleaned = []
    seen = set()
    for keyword in keywords:
        trimmed = keyword.strip()
        if not trimmed or trimmed.lower() in seen:
            continue
        seen.add(trimmed.lower())
        cleaned.append(trimmed)
    return cleaned


def sanitize_categories(categories: list[CloudCategory]) -> list[CloudCategory]:
    """
    Drop invalid categories and collapse duplicates.

    Entries need a non-empty label and a ``#RRGGBB`` color. Two entries with
    the same label (case-insensitive) collapse into the more recently updated
    one; later duplicates of an id are dropped.
    """
    by_label: dict[str, CloudCategory] = {}
    seen_ids = set()

    for entry in categories:
        if not entry.id or entry.id in seen_ids:
            continue
        label = entry.label.strip()
        if not label or not is_valid_color(entry.color):
            continue
        seen_ids.add(entry.id)

        candidate = entry.model_copy(
            update={
                "label": label,
                "keywords": normalize_keywords(entry.keywords),
                "match_mode": "all" if entry.match_mode == "all" else "any",
                "is_default": bool(entry.is_default),
            }
        )
        key = label.lower()
        existing = by_label.get(key)
        if existing is None or candidate.updated_at > existing.updated_at:
            by_label[key] = candidate

    return list(by_label.values())


class CategoryStore(PreferenceStore[list[CloudCategory]]):
    key = "categories"

    def default(self) -> list[CloudCategory]:
        return default_categories()

    def normalize(self, value: list[CloudCategory]) -> list[CloudCategory]:
        return sanitize_categories(value)

    def encode(self, value: list[CloudCategory]) -> list[dict]:
        return [entry.to_wire() for entry in value]

    def decode(self, raw) -> list[CloudCategory]:
        return decode_model_list(raw, CloudCategory)

    def _build(self, data: CategoryInput, existing: list[CloudCategory], category_id: Optional[str] = None) -> CloudCategory:
        label = data.label.strip()
        if not label:
            raise CategoryError("Name is required.")
        if len(label) > MAX_LABEL_LENGTH:
            raise CategoryError(f"Name must be {MAX_LABEL_LENGTH} characters or fewer.")

        keywords = normalize_keywords(data.keywords)
        if not keywords:
            raise CategoryError("Add at least one keyword.")

        if not is_valid_color(data.color):
            raise CategoryError("Pick a valid color.")

        normalized = label.lower()
        if any(entry.id != category_id and entry.label.lower() == normalized for entry in existing):
            raise CategoryError("A category with this name already exists.")
        if normalized == RESERVED_LABEL:
            raise CategoryError("This name is reserved.")

        now = now_ms()
        current = next((entry for entry in existing if entry.id == category_id), None)
        return CloudCategory(
            id=category_id or f"{CUSTOM_CATEGORY_PREFIX}{uuid.uuid4()}",
            label=label,
            color=data.color,
            keywords=keywords,
            match_mode=data.match_mode,
            created_at=current.created_at if current else now,
            updated_at=now,
            is_default=current.is_default if current else False,
        )

    def add_category(self, data: CategoryInput) -> CloudCategory:
        existing = self.get()
        category = self._build(data, existing)
        self.update([*existing, category])
        return category

    def update_category(self, category_id: str, data: CategoryInput) -> CloudCategory:
        existing = self.get()
        if not any(entry.id == category_id for entry in existing):
            raise CategoryError("Category not found.")

        category = self._build(data, existing, category_id)
        self.update([category if entry.id == category_id else entry for entry in existing])
        return category

    def remove_category(self, category_id: str) -> list[CloudCategory]:
        return self.update([entry for entry in self.get() if entry.id != category_id])

    def reset_to_defaults(self) -> list[CloudCategory]:
        return self.update(default_categories())

    def restore_default(self, category_id: str) -> CloudCategory:
        """Bring back a default category the user removed."""
        if category_id not in DEFAULT_CATEGORY_IDS:
            raise CategoryError("Not a default category.")

        existing = self.get()
        if any(entry.id == category_id for entry in existing):
            raise CategoryError("Category already exists.")

        category = make_default_category(category_id)
        if any(entry.label.lower() == category.label.lower() for entry in existing):
            raise CategoryError("A category with this name already exists.")

        self.update([*existing, category])
        return category

    def get_removed_defaults(self) -> list[CloudCategory]:
        existing_ids = {entry.id for entry in self.get()}
        now = now_ms()
        return [
            make_default_category(category_id, now)
            for category_id in DEFAULT_CATEGORY_IDS
            if category_id not in existing_ids
        ]
