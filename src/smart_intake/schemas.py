"""Schema validation for draft payloads coming from the model or the user.

Parsing happens in two passes:

1. Every key is normalised (camelCase or legacy names to the draft field
   name) and validated on its own against the variant's all-optional
   pydantic model. A value that fails validation is recorded as malformed
   and dropped; a key that never appeared is recorded as absent.
2. The surviving values are handed to the draft dataclass, whose field
   defaults fill in everything that was dropped or absent.

Both malformed and absent fields end up at the same default, but the two
lists stay separate on ``ParsedDraft`` so callers (and tests) can tell them
apart.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_snake

from .drafts import (
    BillDraft,
    ChallengeKind,
    DRAFT_CLASSES,
    Draft,
    DraftType,
    LifeArea,
    Priority,
    Quadrant,
    RecurrenceFrequency,
    draft_field_names,
)

logger = logging.getLogger(__name__)


LIFE_AREA_SYNONYMS = {
    "lw-1": "health",
    "lw-2": "career",
    "lw-3": "finance",
    "lw-4": "growth",
    "lw-5": "relationships",
    "lw-6": "social",
    "lw-7": "fun",
    "lw-8": "environment",
    "fitness": "health",
    "health & fitness": "health",
    "work": "career",
    "career & work": "career",
    "money": "finance",
    "finance & money": "finance",
    "personal growth": "growth",
    "family": "relationships",
    "relationships & family": "relationships",
    "social life": "social",
    "recreation": "fun",
    "fun & recreation": "fun",
    "home": "environment",
    "environment & home": "environment",
}

QUADRANT_SYNONYMS = {
    "eq-1": "q1",
    "eq-2": "q2",
    "eq-3": "q3",
    "eq-4": "q4",
    "1": "q1",
    "2": "q2",
    "3": "q3",
    "4": "q4",
}

PRIORITY_SYNONYMS = {
    "normal": "medium",
    "med": "medium",
    "critical": "urgent",
    "highest": "urgent",
    "lowest": "low",
}

CHALLENGE_KIND_SYNONYMS = {
    "yesno": "yes_no",
    "yes/no": "yes_no",
    "boolean": "yes_no",
    "counter": "count",
    "duration": "time",
}

# Names every draft kind understands.
COMMON_ALIASES = {
    "name": "title",
    "life_wheel_area_id": "life_area",
    "life_wheel_area": "life_area",
    "lifewheel_area_id": "life_area",
    "eisenhower_quadrant_id": "quadrant",
    "eisenhower_quadrant": "quadrant",
    "start_date_time": "start_datetime",
    "end_date_time": "end_datetime",
}

# Names whose meaning depends on the draft kind.
KIND_ALIASES: dict[DraftType, dict[str, str]] = {
    DraftType.TASK: {
        "tags": "labels",
        "suggested_epic_id": "epic_ref",
        "epic_id": "epic_ref",
    },
    DraftType.EPIC: {
        "tags": "labels",
        "end_date": "target_date",
    },
    DraftType.CHALLENGE: {
        "tags": "labels",
        "duration": "duration_days",
        "metric_type": "challenge_kind",
        "target_value": "daily_target",
        "unit": "daily_target_unit",
    },
    DraftType.EVENT: {
        "start": "start_datetime",
        "end": "end_datetime",
        "recurrence": "recurrence_rule",
        "all_day": "is_all_day",
    },
    DraftType.BILL: {
        "tags": "labels",
        "vendor_name": "vendor",
        "recurrence": "recurrence_frequency",
        "notes": "description",
    },
    DraftType.NOTE: {
        "labels": "tags",
        "body": "content",
        "text": "content",
    },
}

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def normalize_field_name(name: str, kind: DraftType | None = None) -> str:
    """Map a payload key or question target to a draft field name."""
    snake = to_snake(str(name).strip()).replace("-", "_")
    if kind is not None and snake in KIND_ALIASES.get(kind, {}):
        return KIND_ALIASES[kind][snake]
    return COMMON_ALIASES.get(snake, snake)


class _DraftFields(BaseModel):
    """Shared validators; every field on every subclass is optional."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    @field_validator("title", mode="before", check_fields=False)
    @classmethod
    def _blank_title(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("life_area", mode="before", check_fields=False)
    @classmethod
    def _life_area(cls, value: Any) -> Any:
        if isinstance(value, str):
            key = value.strip().lower()
            return LIFE_AREA_SYNONYMS.get(key, key)
        return value

    @field_validator("quadrant", mode="before", check_fields=False)
    @classmethod
    def _quadrant(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str):
            key = value.strip().lower()
            return QUADRANT_SYNONYMS.get(key, key)
        return value

    @field_validator("labels", "tags", "attendees", mode="before", check_fields=False)
    @classmethod
    def _string_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        if isinstance(value, (list, tuple)):
            return [str(item).strip() for item in value if item is not None and str(item).strip()]
        return value

    @field_validator(
        "start_datetime", "end_datetime", mode="before", check_fields=False
    )
    @classmethod
    def _date_only_datetime(cls, value: Any) -> Any:
        if isinstance(value, str) and _DATE_ONLY.match(value.strip()):
            return f"{value.strip()}T00:00:00"
        return value


class TaskFields(_DraftFields):
    title: str | None = None
    description: str | None = None
    priority: Priority | None = None
    life_area: LifeArea | None = None
    quadrant: Quadrant | None = None
    due_date: date | None = None
    epic_ref: str | None = None
    labels: list[str] | None = None
    estimated_minutes: int | None = Field(default=None, ge=0)

    @field_validator("priority", mode="before")
    @classmethod
    def _priority(cls, value: Any) -> Any:
        if isinstance(value, str):
            key = value.strip().lower()
            return PRIORITY_SYNONYMS.get(key, key)
        return value


class EpicFields(_DraftFields):
    title: str | None = None
    description: str | None = None
    life_area: LifeArea | None = None
    quadrant: Quadrant | None = None
    start_date: date | None = None
    target_date: date | None = None
    labels: list[str] | None = None
    target_percentage: int | None = Field(default=None, ge=0, le=100)


class ChallengeFields(_DraftFields):
    title: str | None = None
    description: str | None = None
    challenge_kind: ChallengeKind | None = None
    life_area: LifeArea | None = None
    duration_days: int | None = Field(default=None, ge=1)
    start_date: date | None = None
    daily_target: float | None = Field(default=None, ge=0)
    daily_target_unit: str | None = None
    labels: list[str] | None = None
    reminder_time: time | None = None

    @field_validator("challenge_kind", mode="before")
    @classmethod
    def _challenge_kind(cls, value: Any) -> Any:
        if isinstance(value, str):
            key = value.strip().lower()
            return CHALLENGE_KIND_SYNONYMS.get(key, key)
        return value


class EventFields(_DraftFields):
    title: str | None = None
    description: str | None = None
    life_area: LifeArea | None = None
    start_datetime: datetime | None = None
    end_datetime: datetime | None = None
    location: str | None = None
    attendees: list[str] | None = None
    is_all_day: bool | None = None
    reminder_minutes_before: int | None = Field(default=None, ge=0)
    recurrence_rule: str | None = None


class BillFields(_DraftFields):
    title: str | None = None
    description: str | None = None
    vendor: str | None = None
    amount: Decimal | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    due_date: date | None = None
    is_recurring: bool | None = None
    recurrence_frequency: RecurrenceFrequency | None = None
    category: str | None = None
    autopay: bool | None = None
    reminder_days_before: int | None = Field(default=None, ge=0)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lstrip("$€£").replace(",", "")
        return value

    @field_validator("currency", mode="after")
    @classmethod
    def _currency(cls, value: str | None) -> str | None:
        return value.upper() if value else value

    @field_validator("recurrence_frequency", mode="before")
    @classmethod
    def _frequency(cls, value: Any) -> Any:
        if isinstance(value, str):
            key = value.strip().lower()
            return None if key in ("", "none", "once", "one-time") else key
        return value

    @field_validator("category", mode="after")
    @classmethod
    def _category(cls, value: str | None) -> str | None:
        return value.lower().replace(" ", "_") if value else value


class NoteFields(_DraftFields):
    title: str | None = None
    content: str | None = None
    life_area: LifeArea | None = None
    tags: list[str] | None = None
    linked_entity_ref: str | None = None
    linked_entity_kind: DraftType | None = None
    is_pinned: bool | None = None


FIELD_SCHEMAS: dict[DraftType, type[_DraftFields]] = {
    DraftType.TASK: TaskFields,
    DraftType.EPIC: EpicFields,
    DraftType.CHALLENGE: ChallengeFields,
    DraftType.EVENT: EventFields,
    DraftType.BILL: BillFields,
    DraftType.NOTE: NoteFields,
}


@dataclass(frozen=True)
class ParsedDraft:
    """A draft plus a record of which fields fell back to defaults."""

    draft: Draft
    malformed_fields: tuple[str, ...] = ()
    absent_fields: tuple[str, ...] = ()


def _validate_one(kind: DraftType, name: str, value: Any) -> Any:
    """Validate a single field value; raises ValidationError when malformed."""
    schema = FIELD_SCHEMAS[kind]
    validated = schema.model_validate({name: value})
    result = getattr(validated, name)
    if isinstance(result, list):
        return tuple(result)
    return result


def coerce_field(kind: DraftType, name: str, value: Any) -> tuple[str, Any] | None:
    """Coerce one user-supplied value to a field of ``kind``.

    Returns:
        ``(field_name, value)``, or None when the field is unknown to this
        draft kind or the value cannot be coerced.
    """
    field_name = normalize_field_name(name, kind)
    if field_name not in FIELD_SCHEMAS[kind].model_fields:
        logger.debug(f"Ignoring value for unknown {kind.value} field '{name}'")
        return None
    try:
        coerced = _validate_one(kind, field_name, value)
    except ValidationError as e:
        logger.info(f"Rejected value for {kind.value}.{field_name}: {e.error_count()} error(s)")
        return None
    if coerced is None:
        return None
    return field_name, coerced


def _merge_legacy_event_fields(payload: dict[str, Any]) -> dict[str, Any]:
    """Fold the older ``date`` + ``startTime``/``endTime`` shape into datetimes."""
    day = payload.get("date")
    if not isinstance(day, str) or not day.strip():
        return payload
    merged = dict(payload)
    merged.pop("date")
    present = {normalize_field_name(key, DraftType.EVENT) for key in merged}
    for part, target in (("startTime", "start_datetime"), ("endTime", "end_datetime")):
        clock = merged.pop(part, None) or merged.pop(to_snake(part), None)
        if target in present:
            continue
        if isinstance(clock, str) and clock.strip():
            merged[target] = f"{day.strip()}T{clock.strip()}"
        elif target == "start_datetime":
            merged[target] = day.strip()
    return merged


def parse_draft(kind: DraftType, payload: Any) -> ParsedDraft:
    """Parse a raw payload into a draft of ``kind``, never raising.

    Args:
        kind: Draft kind to build
        payload: Mapping from the model or client; anything else is treated
            as an empty payload with every field absent

    Returns:
        ParsedDraft with the draft and the malformed/absent field names
    """
    if not isinstance(payload, dict):
        if payload is not None:
            logger.warning(f"Draft payload for {kind.value} is {type(payload).__name__}, not an object")
        payload = {}
    if kind == DraftType.EVENT:
        payload = _merge_legacy_event_fields(payload)

    schema_fields = FIELD_SCHEMAS[kind].model_fields
    values: dict[str, Any] = {}
    malformed: list[str] = []

    for raw_name, raw_value in payload.items():
        name = normalize_field_name(raw_name, kind)
        if name not in schema_fields or name in values or raw_value is None:
            continue
        try:
            coerced = _validate_one(kind, name, raw_value)
        except ValidationError:
            logger.debug(f"Malformed {kind.value}.{name}: {raw_value!r}")
            if name not in malformed:
                malformed.append(name)
            continue
        if coerced is not None:
            values[name] = coerced
            if name in malformed:
                malformed.remove(name)

    draft = _with_derived_defaults(DRAFT_CLASSES[kind](**values))
    absent = tuple(
        name for name in draft_field_names(kind) if name not in values and name not in malformed
    )
    return ParsedDraft(draft=draft, malformed_fields=tuple(malformed), absent_fields=absent)


def _with_derived_defaults(draft: Draft) -> Draft:
    if isinstance(draft, BillDraft) and draft.title is None and draft.vendor:
        return dataclasses.replace(draft, title=draft.vendor)
    return draft
