"""Cloud configuration document models.

The remote config file is a single JSON document in one of two shapes,
discriminated by its ``version`` field. Version 1 is the legacy shape with
split built-in/custom categories; version 2 carries one unified category list.
"""

import logging
import time
from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

# Limits applied when reading documents written by other devices
MAX_STRING_LENGTH = 1000
MAX_ARRAY_LENGTH = 500
MAX_COLOR_LENGTH = 20

# Built-in category ids a V1 document may list as disabled
VALID_BUILT_IN_CATEGORY_IDS = frozenset(
    ["birthdays", "family", "holidays", "adventures", "races", "work"]
)

BoundedStr = Annotated[str, Field(max_length=MAX_STRING_LENGTH)]
CategoryMatchMode = Literal["any", "all"]


def now_ms() -> int:
    """Current time as epoch milliseconds, the unit of every document timestamp."""
    return int(time.time() * 1000)


class InvalidDocumentError(ValueError):
    """Raised when a remote document does not match either schema version."""


class CloudModel(BaseModel):
    """Base model using camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """Serialize with wire (camelCase) keys, omitting unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class EventFilter(CloudModel):
    """Hide-by-title-substring rule."""

    id: BoundedStr
    pattern: BoundedStr
    created_at: int


class CloudCustomCategory(CloudModel):
    """Legacy (v1) user-created category."""

    id: BoundedStr
    label: BoundedStr
    color: Annotated[str, Field(max_length=MAX_COLOR_LENGTH)]
    keywords: Annotated[list[BoundedStr], Field(max_length=MAX_ARRAY_LENGTH)]
    match_mode: CategoryMatchMode
    created_at: int
    updated_at: int


class CloudCategory(CloudCustomCategory):
    """Unified (v2) category; ``updated_at`` drives per-item conflict resolution."""

    is_default: Optional[bool] = None


def _keep_valid(items: list, adapter: TypeAdapter, field: str) -> list:
    kept = []
    for item in items:
        try:
            kept.append(adapter.validate_python(item))
        except ValidationError:
            logger.debug(f"Dropping malformed entry from '{field}'")
    return kept


_filter_adapter = TypeAdapter(EventFilter)
_calendar_id_adapter = TypeAdapter(BoundedStr)
_custom_category_adapter = TypeAdapter(CloudCustomCategory)
_category_adapter = TypeAdapter(CloudCategory)


class _ConfigDocumentBase(CloudModel):
    """Fields and read-path leniency shared by both schema versions."""

    # wire key -> adapter for list fields whose bad entries are dropped
    LIST_FIELDS: ClassVar[dict[str, TypeAdapter]] = {
        "filters": _filter_adapter,
        "disabledCalendars": _calendar_id_adapter,
    }
    # wire key -> accepted python types for optional display scalars
    SCALAR_FIELDS: ClassVar[dict[str, tuple]] = {
        "matchDescription": (bool,),
        "weekViewEnabled": (bool,),
        "monthScrollEnabled": (bool,),
        "monthScrollDensity": (int, float),
    }

    updated_at: int
    device_id: BoundedStr
    filters: list[EventFilter]
    disabled_calendars: list[str]

    match_description: Optional[bool] = None
    week_view_enabled: Optional[bool] = None
    month_scroll_enabled: Optional[bool] = None
    month_scroll_density: Optional[float] = None

    @model_validator(mode="before")
    @classmethod
    def _drop_malformed_entries(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        cleaned = dict(data)
        for key, adapter in cls.LIST_FIELDS.items():
            field_name = _field_name(cls, key)
            raw_key = key if key in cleaned else field_name
            items = cleaned.get(raw_key)
            if not isinstance(items, list) or len(items) > MAX_ARRAY_LENGTH:
                raise ValueError(f"'{key}' must be a list of at most {MAX_ARRAY_LENGTH} entries")
            cleaned[raw_key] = _keep_valid(items, adapter, key)

        for key, types in cls.SCALAR_FIELDS.items():
            field_name = _field_name(cls, key)
            for raw_key in (key, field_name):
                value = cleaned.get(raw_key)
                if value is None:
                    continue
                if isinstance(value, bool) and bool not in types:
                    cleaned.pop(raw_key)
                elif not isinstance(value, types):
                    cleaned.pop(raw_key)

        return cleaned


def _field_name(model: type[BaseModel], alias: str) -> str:
    for name, info in model.model_fields.items():
        if info.alias == alias:
            return name
    return alias


class ConfigDocumentV1(_ConfigDocumentBase):
    """Legacy document shape."""

    LIST_FIELDS: ClassVar[dict[str, TypeAdapter]] = {
        **_ConfigDocumentBase.LIST_FIELDS,
        "disabledBuiltInCategories": _calendar_id_adapter,
        "customCategories": _custom_category_adapter,
    }
    SCALAR_FIELDS: ClassVar[dict[str, tuple]] = {
        **_ConfigDocumentBase.SCALAR_FIELDS,
        "showTimedEvents": (bool,),
    }

    version: Literal[1] = 1
    disabled_built_in_categories: list[str]
    custom_categories: list[CloudCustomCategory]
    show_timed_events: Optional[bool] = None

    @field_validator("disabled_built_in_categories")
    @classmethod
    def _known_built_ins_only(cls, value: list[str]) -> list[str]:
        return [cat_id for cat_id in value if cat_id in VALID_BUILT_IN_CATEGORY_IDS]


class ConfigDocumentV2(_ConfigDocumentBase):
    """Current document shape with a unified category list."""

    LIST_FIELDS: ClassVar[dict[str, TypeAdapter]] = {
        **_ConfigDocumentBase.LIST_FIELDS,
        "categories": _category_adapter,
    }
    SCALAR_FIELDS: ClassVar[dict[str, tuple]] = {
        **_ConfigDocumentBase.SCALAR_FIELDS,
        "timedEventMinHours": (int, float),
    }

    version: Literal[2] = 2
    categories: list[CloudCategory]
    timed_event_min_hours: Optional[float] = None


ConfigDocument = Annotated[
    Union[ConfigDocumentV1, ConfigDocumentV2],
    Field(discriminator="version"),
]

_document_adapter = TypeAdapter(ConfigDocument)


def parse_document(data: Any) -> Union[ConfigDocumentV1, ConfigDocumentV2]:
    """
    Validate a decoded JSON document read from the remote store.

    Structural problems reject the whole document; individual malformed list
    entries and mistyped display values are dropped.
    """
    try:
        return _document_adapter.validate_python(data)
    except ValidationError as e:
        raise InvalidDocumentError(f"Invalid cloud config structure: {e.error_count()} error(s)") from e
