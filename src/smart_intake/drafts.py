"""Draft model: the proposed entities the intake pipeline produces.

A draft is one of six frozen dataclasses. Exactly one variant is active per
value; turns never mutate a draft in place, they build a new one with
``update_draft``. List-valued fields are tuples so a draft is hashable and
safe to keep as history.

Critical fields (see ``smart_intake.clarification.CRITICAL_FIELDS``) default
to ``None`` so a missing value can be detected and asked about. Every other
field carries a usable default.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Union


class DraftType(str, Enum):
    """Kind of entity a draft will become."""

    TASK = "task"
    EPIC = "epic"
    CHALLENGE = "challenge"
    EVENT = "event"
    BILL = "bill"
    NOTE = "note"


class LifeArea(str, Enum):
    """Life-wheel area an entity belongs to."""

    HEALTH = "health"
    CAREER = "career"
    FINANCE = "finance"
    GROWTH = "growth"
    RELATIONSHIPS = "relationships"
    SOCIAL = "social"
    FUN = "fun"
    ENVIRONMENT = "environment"


class Quadrant(str, Enum):
    """Eisenhower quadrant (urgent/important matrix)."""

    Q1 = "q1"  # urgent & important
    Q2 = "q2"  # important, not urgent
    Q3 = "q3"  # urgent, not important
    Q4 = "q4"  # neither


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ChallengeKind(str, Enum):
    """How progress on a challenge is tracked."""

    YES_NO = "yes_no"
    COUNT = "count"
    TIME = "time"
    STREAK = "streak"


class RecurrenceFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


@dataclass(frozen=True)
class TaskDraft:
    """Single actionable item for a sprint."""

    kind: ClassVar[DraftType] = DraftType.TASK

    title: str | None = None
    description: str = ""
    priority: Priority = Priority.MEDIUM
    life_area: LifeArea | None = None
    quadrant: Quadrant = Quadrant.Q2
    due_date: date | None = None
    epic_ref: str | None = None
    labels: tuple[str, ...] = ()
    estimated_minutes: int = 30


@dataclass(frozen=True)
class EpicDraft:
    """Larger goal that groups several tasks."""

    kind: ClassVar[DraftType] = DraftType.EPIC

    title: str = "Untitled Epic"
    description: str = ""
    life_area: LifeArea = LifeArea.GROWTH
    quadrant: Quadrant = Quadrant.Q2
    start_date: date | None = None
    target_date: date | None = None
    labels: tuple[str, ...] = ()
    target_percentage: int = 100


@dataclass(frozen=True)
class ChallengeDraft:
    """Habit-building tracker running for a number of days."""

    kind: ClassVar[DraftType] = DraftType.CHALLENGE

    title: str | None = None
    description: str = ""
    challenge_kind: ChallengeKind = ChallengeKind.YES_NO
    life_area: LifeArea | None = None
    duration_days: int | None = None
    start_date: date | None = None
    daily_target: float = 1.0
    daily_target_unit: str = "times"
    labels: tuple[str, ...] = ()
    reminder_time: time = time(9, 0)


@dataclass(frozen=True)
class EventDraft:
    """Calendar-blocked time commitment."""

    kind: ClassVar[DraftType] = DraftType.EVENT

    title: str | None = None
    description: str = ""
    life_area: LifeArea = LifeArea.GROWTH
    start_datetime: datetime | None = None
    end_datetime: datetime | None = None
    location: str | None = None
    attendees: tuple[str, ...] = ()
    is_all_day: bool = False
    reminder_minutes_before: int = 15
    recurrence_rule: str | None = None


@dataclass(frozen=True)
class BillDraft:
    """Financial obligation to track and pay."""

    kind: ClassVar[DraftType] = DraftType.BILL

    title: str | None = None
    description: str = ""
    vendor: str | None = None
    amount: Decimal = Decimal("0")
    currency: str = "USD"
    due_date: date | None = None
    is_recurring: bool = False
    recurrence_frequency: RecurrenceFrequency | None = None
    category: str = "other"
    autopay: bool = False
    reminder_days_before: int = 3


@dataclass(frozen=True)
class NoteDraft:
    """Quick capture, also the fallback when intent is unclear."""

    kind: ClassVar[DraftType] = DraftType.NOTE

    title: str = "Quick Note"
    content: str = ""
    life_area: LifeArea = LifeArea.GROWTH
    tags: tuple[str, ...] = ()
    linked_entity_ref: str | None = None
    linked_entity_kind: DraftType | None = None
    is_pinned: bool = False


Draft = Union[TaskDraft, EpicDraft, ChallengeDraft, EventDraft, BillDraft, NoteDraft]

DRAFT_CLASSES: dict[DraftType, type] = {
    DraftType.TASK: TaskDraft,
    DraftType.EPIC: EpicDraft,
    DraftType.CHALLENGE: ChallengeDraft,
    DraftType.EVENT: EventDraft,
    DraftType.BILL: BillDraft,
    DraftType.NOTE: NoteDraft,
}

FALLBACK_NOTE_TITLE = "Quick Note"


def draft_class(kind: DraftType) -> type:
    """Return the dataclass implementing a draft kind."""
    return DRAFT_CLASSES[kind]


def draft_field_names(kind: DraftType) -> tuple[str, ...]:
    """Names of the fields carried by a draft kind, in declaration order."""
    return tuple(f.name for f in dataclasses.fields(DRAFT_CLASSES[kind]))


def update_draft(draft: Draft, changes: dict[str, Any]) -> Draft:
    """Return a new draft with ``changes`` applied.

    Keys that are not fields of this variant are ignored, which keeps answers
    meant for another draft kind from leaking across variants.
    """
    known = set(draft_field_names(draft.kind))
    applicable = {name: value for name, value in changes.items() if name in known}
    if not applicable:
        return draft
    return dataclasses.replace(draft, **applicable)


def fallback_note(text: str, title: str = FALLBACK_NOTE_TITLE) -> NoteDraft:
    """Build the note used when input cannot be interpreted."""
    return NoteDraft(title=title, content=text or "")


def _short_title(text: str, limit: int = 60) -> str | None:
    text = " ".join((text or "").split())
    if not text:
        return None
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def convert_draft(draft: Draft, target: DraftType, fallback_text: str = "") -> Draft:
    """Build a minimal draft of another kind from the fields all kinds share.

    Used when the user declines a suggested alternative: the result carries
    the title, description, life area and labels of ``draft`` and nothing
    kind-specific.
    """
    if draft.kind == target:
        return draft

    title = getattr(draft, "title", None) or _short_title(fallback_text)
    body = getattr(draft, "description", None) or getattr(draft, "content", None) or ""
    labels = getattr(draft, "labels", None) or getattr(draft, "tags", None) or ()
    life_area = getattr(draft, "life_area", None)

    values: dict[str, Any] = {}
    target_fields = set(draft_field_names(target))
    if title is not None:
        values["title"] = title
    if "description" in target_fields:
        values["description"] = body
    if "content" in target_fields:
        values["content"] = body or fallback_text
    if "labels" in target_fields:
        values["labels"] = tuple(labels)
    if "tags" in target_fields:
        values["tags"] = tuple(labels)
    if life_area is not None and "life_area" in target_fields:
        values["life_area"] = life_area
    return DRAFT_CLASSES[target](**values)


def fill_best_effort(draft: Draft, fallback_text: str = "") -> Draft:
    """Fill still-unset fields that have a sensible guess.

    Applied when a draft is finalized without every critical field answered.
    Fields nothing can be guessed for (an event start, a bill due date) stay
    unset.
    """
    changes: dict[str, Any] = {}
    fields = set(draft_field_names(draft.kind))
    if "title" in fields and not getattr(draft, "title", None):
        guess = getattr(draft, "vendor", None) or _short_title(fallback_text)
        if guess:
            changes["title"] = guess
    if "life_area" in fields and getattr(draft, "life_area", None) is None:
        changes["life_area"] = LifeArea.GROWTH
    if isinstance(draft, ChallengeDraft) and draft.duration_days is None:
        changes["duration_days"] = 30
    return update_draft(draft, changes)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, tuple):
        return [_jsonable(v) for v in value]
    return value


def draft_to_dict(draft: Draft) -> dict[str, Any]:
    """Convert a draft to a JSON-ready dict tagged with its ``type``."""
    data: dict[str, Any] = {"type": draft.kind.value}
    for f in dataclasses.fields(draft):
        data[f.name] = _jsonable(getattr(draft, f.name))
    return data
