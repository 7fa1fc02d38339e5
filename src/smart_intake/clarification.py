"""Clarification flow engine.

Decides which critical fields a draft still lacks, turns them into
questions within the session's question budget, and merges the user's
answers back into a new draft value.

Question ids are the normalised target field names, so an answer keyed by
either the question id or the field name resolves to the same field.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Mapping
from uuid import uuid4

from .drafts import Draft, DraftType, draft_field_names, update_draft
from .schemas import coerce_field, normalize_field_name

logger = logging.getLogger(__name__)


DEFAULT_QUESTION_BUDGET = 5

QuestionKind = Literal[
    "single_choice",
    "multi_choice",
    "yes_no",
    "free_text",
    "number",
    "date",
    "time",
]

# Names the model has used for question kinds, mapped onto ours.
_KIND_SYNONYMS: dict[str, QuestionKind] = {
    "single_choice": "single_choice",
    "multiple_choice": "multi_choice",
    "multi_choice": "multi_choice",
    "yes_no": "yes_no",
    "text_input": "free_text",
    "free_text": "free_text",
    "text": "free_text",
    "number_input": "number",
    "number": "number",
    "date_picker": "date",
    "date": "date",
    "time_picker": "time",
    "time": "time",
}

CONFIRM_QUESTION_ID = "confirm"

# Fields that must be set before a draft can be finalized without asking.
CRITICAL_FIELDS: dict[DraftType, tuple[str, ...]] = {
    DraftType.TASK: ("title", "life_area"),
    DraftType.EPIC: (),
    DraftType.CHALLENGE: ("title", "life_area", "duration_days"),
    DraftType.EVENT: ("title", "start_datetime"),
    DraftType.BILL: ("vendor", "due_date"),
    DraftType.NOTE: (),
}


@dataclass(frozen=True)
class QuestionOption:
    """A selectable answer for choice questions."""

    value: str
    label: str
    icon: str | None = None
    description: str | None = None

    def to_dict(self) -> dict:
        return {
            "value": self.value,
            "label": self.label,
            "icon": self.icon,
            "description": self.description,
        }


@dataclass(frozen=True)
class ClarificationQuestion:
    """One question aimed at a single draft field."""

    id: str
    prompt: str
    kind: QuestionKind
    target_field: str
    options: tuple[QuestionOption, ...] = ()
    required: bool = True
    default_value: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "prompt": self.prompt,
            "kind": self.kind,
            "options": [o.to_dict() for o in self.options],
            "target_field": self.target_field,
            "required": self.required,
            "default_value": self.default_value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], draft_kind: DraftType | None = None) -> "ClarificationQuestion | None":
        """Build a question from model output, or None if it has no usable text."""
        prompt = data.get("question") or data.get("prompt")
        if not isinstance(prompt, str) or not prompt.strip():
            return None

        raw_target = data.get("fieldToPopulate") or data.get("targetField") or data.get("id")
        if not isinstance(raw_target, str) or not raw_target.strip():
            return None
        target = normalize_field_name(raw_target, draft_kind)

        raw_kind = str(data.get("type") or data.get("kind") or "single_choice")
        kind = _KIND_SYNONYMS.get(raw_kind.strip().lower().replace("-", "_"), "free_text")

        options: list[QuestionOption] = []
        raw_options = data.get("options")
        if isinstance(raw_options, list):
            for raw in raw_options:
                if isinstance(raw, Mapping) and raw.get("value") is not None:
                    options.append(
                        QuestionOption(
                            value=str(raw["value"]),
                            label=str(raw.get("label") or raw["value"]),
                            icon=raw.get("icon"),
                            description=raw.get("description"),
                        )
                    )
                elif isinstance(raw, str):
                    options.append(QuestionOption(value=raw, label=raw))
        if kind in ("single_choice", "multi_choice") and not options:
            kind = "free_text"

        default = data.get("defaultValue", data.get("default_value"))
        return cls(
            id=target,
            prompt=prompt.strip(),
            kind=kind,
            target_field=target,
            options=tuple(options),
            required=bool(data.get("required", True)),
            default_value=str(default) if default is not None else None,
        )


@dataclass(frozen=True)
class ClarificationFlow:
    """An ordered batch of questions shown to the user in one turn."""

    title: str
    description: str
    questions: tuple[ClarificationQuestion, ...] = ()
    total_budget: int = DEFAULT_QUESTION_BUDGET
    current_index: int = 0
    flow_id: str = field(default_factory=lambda: str(uuid4()))

    @property
    def total_questions(self) -> int:
        """Get the total number of questions."""
        return len(self.questions)

    def target_for(self, question_id: str) -> str | None:
        """Return the target field of a question in this flow."""
        for question in self.questions:
            if question.id == question_id:
                return question.target_field
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "flow_id": self.flow_id,
            "title": self.title,
            "description": self.description,
            "questions": [q.to_dict() for q in self.questions],
            "current_index": self.current_index,
            "total_questions": self.total_questions,
            "total_budget": self.total_budget,
        }


@dataclass(frozen=True)
class Answer:
    """A user's answer to one clarification question."""

    question_id: str
    value: Any
    metadata: dict | None = None


# ---------------------------------------------------------------------------
# Question templates
# ---------------------------------------------------------------------------


def _choice(qid: str, prompt: str, options: list[tuple[str, str, str | None]], default: str | None = None, required: bool = True) -> ClarificationQuestion:
    return ClarificationQuestion(
        id=qid,
        prompt=prompt,
        kind="single_choice",
        target_field=qid,
        options=tuple(QuestionOption(value=v, label=l, icon=i) for v, l, i in options),
        required=required,
        default_value=default,
    )


def _single(qid: str, prompt: str, kind: QuestionKind, required: bool = True) -> ClarificationQuestion:
    return ClarificationQuestion(id=qid, prompt=prompt, kind=kind, target_field=qid, required=required)


def _yes_no(qid: str, prompt: str, default: str = "no") -> ClarificationQuestion:
    return ClarificationQuestion(
        id=qid,
        prompt=prompt,
        kind="yes_no",
        target_field=qid,
        options=(QuestionOption("yes", "Yes"), QuestionOption("no", "No")),
        required=False,
        default_value=default,
    )


QUESTION_TEMPLATES: dict[str, Callable[[], ClarificationQuestion]] = {
    "life_area": lambda: _choice(
        "life_area",
        "Which area of your life does this relate to?",
        [
            ("health", "Health & Fitness", "💪"),
            ("career", "Career & Work", "💼"),
            ("finance", "Finance & Money", "💰"),
            ("growth", "Personal Growth", "🌱"),
            ("relationships", "Relationships & Family", "❤️"),
            ("social", "Social Life", "👥"),
            ("fun", "Fun & Recreation", "🎮"),
            ("environment", "Environment & Home", "🏠"),
        ],
        default="growth",
    ),
    "quadrant": lambda: _choice(
        "quadrant",
        "How urgent and important is this?",
        [
            ("q1", "Urgent & Important", "🔴"),
            ("q2", "Important, Not Urgent", "🟢"),
            ("q3", "Urgent, Not Important", "🟡"),
            ("q4", "Neither", "⚪"),
        ],
        default="q2",
    ),
    "priority": lambda: _choice(
        "priority",
        "How high a priority is this?",
        [("low", "Low", None), ("medium", "Medium", None), ("high", "High", None), ("urgent", "Urgent", None)],
        default="medium",
    ),
    "title": lambda: _single("title", "What would you like to call this?", "free_text"),
    "description": lambda: _single("description", "Anything else worth noting?", "free_text", required=False),
    "due_date": lambda: _single("due_date", "When is this due?", "date"),
    "start_date": lambda: _single("start_date", "When should this start?", "date"),
    "start_datetime": lambda: _single("start_datetime", "When is this scheduled?", "date"),
    "duration_days": lambda: _choice(
        "duration_days",
        "How long do you want this challenge to last?",
        [
            ("7", "1 Week", "🏃"),
            ("14", "2 Weeks", "📅"),
            ("21", "21 Days", "🎯"),
            ("30", "30 Days", "📆"),
            ("60", "60 Days", "💪"),
            ("90", "90 Days", "🏆"),
        ],
        default="30",
    ),
    "challenge_kind": lambda: _choice(
        "challenge_kind",
        "How do you want to track progress?",
        [
            ("yes_no", "Yes/No", "✅"),
            ("count", "Count", "🔢"),
            ("time", "Time", "⏱️"),
            ("streak", "Streak", "🔥"),
        ],
        default="yes_no",
    ),
    "daily_target": lambda: _single("daily_target", "What's your daily target?", "number", required=False),
    "vendor": lambda: _single("vendor", "Who is this bill from?", "free_text"),
    "amount": lambda: _single("amount", "How much is it?", "number"),
    "category": lambda: _choice(
        "category",
        "What type of bill is this?",
        [
            ("subscription", "Subscription", "📱"),
            ("utilities", "Utilities", "💡"),
            ("insurance", "Insurance", "🛡️"),
            ("rent", "Rent/Mortgage", "🏠"),
            ("credit_card", "Credit Card", "💳"),
            ("loan", "Loan Payment", "🏦"),
            ("other", "Other", "📄"),
        ],
        default="other",
        required=False,
    ),
    "recurrence_frequency": lambda: _choice(
        "recurrence_frequency",
        "How often does this repeat?",
        [("daily", "Daily", None), ("weekly", "Weekly", None), ("monthly", "Monthly", None), ("yearly", "Yearly", None)],
        default="monthly",
        required=False,
    ),
    "is_recurring": lambda: _yes_no("is_recurring", "Is this recurring?"),
    "is_all_day": lambda: _yes_no("is_all_day", "Is this an all-day event?"),
    "autopay": lambda: _yes_no("autopay", "Is this paid automatically?"),
}


def question_for_field(field_name: str) -> ClarificationQuestion:
    """Build the question that asks for a single field."""
    template = QUESTION_TEMPLATES.get(field_name)
    if template:
        return template()
    return _single(field_name, f"Please provide: {field_name.replace('_', ' ')}", "free_text")


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def missing_critical_fields(draft: Draft) -> list[str]:
    """List the critical fields of ``draft`` that are still unset or blank."""
    missing = []
    for name in CRITICAL_FIELDS[draft.kind]:
        value = getattr(draft, name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    return missing


def generate_follow_up(
    draft: Draft,
    missing_fields: list[str],
    questions_asked: int,
    total_budget: int = DEFAULT_QUESTION_BUDGET,
) -> ClarificationFlow:
    """Build the next batch of questions, never exceeding the budget.

    Args:
        draft: Draft being clarified
        missing_fields: Fields to ask about, in order
        questions_asked: Questions already shown in this session
        total_budget: Maximum questions per session

    Returns:
        Flow with at most ``total_budget - questions_asked`` questions (may be
        empty once the budget is spent)
    """
    remaining = max(total_budget - questions_asked, 0)
    questions = tuple(question_for_field(name) for name in missing_fields[:remaining])
    count = len(questions)
    return ClarificationFlow(
        title="Almost there!",
        description=f"Just {count} more question{'s' if count != 1 else ''} about your {draft.kind.value}",
        questions=questions,
        total_budget=total_budget,
    )


def confirmation_flow(suggested_kind: DraftType, reason: str | None = None) -> ClarificationFlow:
    """Single yes/no question asking whether to accept a suggested kind."""
    question = ClarificationQuestion(
        id=CONFIRM_QUESTION_ID,
        prompt=f"Would you like to create a {suggested_kind.value} instead?",
        kind="yes_no",
        target_field="confirmation",
        options=(
            QuestionOption("yes", "Yes, sounds good!", "👍"),
            QuestionOption("no", "No, keep my original idea", "↩️"),
        ),
        required=True,
    )
    return ClarificationFlow(
        title="Quick Suggestion",
        description=reason or f"This looks like it might work better as a {suggested_kind.value}.",
        questions=(question,),
        total_budget=1,
    )


def apply_answers(draft: Draft, answers: Mapping[str, Any]) -> Draft:
    """Merge answers into a new draft of the same kind.

    Args:
        draft: Current draft (left untouched)
        answers: Mapping of target field (or question id) to answer value

    Returns:
        New draft; answers for fields this kind does not have, and values that
        cannot be coerced, are ignored
    """
    changes: dict[str, Any] = {}
    for key, value in answers.items():
        coerced = coerce_field(draft.kind, key, value)
        if coerced is None:
            continue
        name, converted = coerced
        changes[name] = converted
    return update_draft(draft, changes)


def answers_by_field(answers: list[Answer], flow: ClarificationFlow | None, kind: DraftType) -> dict[str, Any]:
    """Resolve answers keyed by question id to answers keyed by field name.

    Question ids not present in ``flow`` are treated as field names, so a
    client can answer fields the server did not ask about.
    """
    resolved: dict[str, Any] = {}
    known = set(draft_field_names(kind))
    for answer in answers:
        target = flow.target_for(answer.question_id) if flow else None
        name = normalize_field_name(target or answer.question_id, kind)
        if name not in known:
            logger.debug(f"Answer for '{answer.question_id}' has no {kind.value} field; ignored")
            continue
        resolved[name] = answer.value
    return resolved
