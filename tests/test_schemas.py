"""Tests for draft payload parsing."""

from datetime import date, datetime
from decimal import Decimal

from smart_intake.drafts import (
    BillDraft,
    ChallengeKind,
    DraftType,
    EventDraft,
    LifeArea,
    Priority,
    Quadrant,
    RecurrenceFrequency,
    TaskDraft,
)
from smart_intake.schemas import coerce_field, normalize_field_name, parse_draft


class TestFieldNames:
    """Key normalisation."""

    def test_camel_case(self):
        assert normalize_field_name("dueDate") == "due_date"
        assert normalize_field_name("estimatedMinutes") == "estimated_minutes"

    def test_legacy_names(self):
        assert normalize_field_name("lifeWheelAreaId") == "life_area"
        assert normalize_field_name("eisenhowerQuadrantId") == "quadrant"
        assert normalize_field_name("name") == "title"

    def test_kind_specific_names(self):
        """The same key can mean different fields for different kinds."""
        assert normalize_field_name("recurrence", DraftType.BILL) == "recurrence_frequency"
        assert normalize_field_name("recurrence", DraftType.EVENT) == "recurrence_rule"
        assert normalize_field_name("tags", DraftType.TASK) == "labels"
        assert normalize_field_name("labels", DraftType.NOTE) == "tags"


class TestParseDraft:
    """Schema-validated parsing followed by defaulting."""

    def test_complete_bill(self):
        """A well-formed bill parses with every field typed."""
        parsed = parse_draft(
            DraftType.BILL,
            {
                "title": "Electricity",
                "vendorName": "City Power",
                "amount": 120,
                "currency": "usd",
                "dueDate": "2025-03-03",
                "isRecurring": True,
                "recurrenceFrequency": "monthly",
                "category": "Utilities",
            },
        )
        bill = parsed.draft

        assert isinstance(bill, BillDraft)
        assert bill.vendor == "City Power"
        assert bill.amount == Decimal("120")
        assert bill.currency == "USD"
        assert bill.due_date == date(2025, 3, 3)
        assert bill.recurrence_frequency == RecurrenceFrequency.MONTHLY
        assert bill.category == "utilities"
        assert parsed.malformed_fields == ()

    def test_amount_with_currency_symbol(self):
        parsed = parse_draft(DraftType.BILL, {"amount": "$1,250.00"})
        assert parsed.draft.amount == Decimal("1250.00")

    def test_malformed_and_absent_are_distinguished(self):
        """Both default, but are reported separately."""
        parsed = parse_draft(DraftType.TASK, {"title": "Plan trip", "priority": "whenever", "estimatedMinutes": -5})
        task = parsed.draft

        assert task.priority == Priority.MEDIUM
        assert task.estimated_minutes == 30
        assert set(parsed.malformed_fields) == {"priority", "estimated_minutes"}
        assert "priority" not in parsed.absent_fields
        assert "life_area" in parsed.absent_fields
        assert "title" not in parsed.absent_fields

    def test_legacy_enum_codes(self):
        """Old life-wheel and quadrant ids map onto enum values."""
        task = parse_draft(DraftType.TASK, {"lifeWheelAreaId": "lw-2", "eisenhowerQuadrantId": "eq-1"}).draft
        assert task.life_area == LifeArea.CAREER
        assert task.quadrant == Quadrant.Q1

    def test_display_names(self):
        task = parse_draft(DraftType.TASK, {"lifeArea": "Health & Fitness", "priority": "critical"}).draft
        assert task.life_area == LifeArea.HEALTH
        assert task.priority == Priority.URGENT

    def test_blank_title_stays_unset(self):
        """An empty title is treated as missing so it can be asked for."""
        assert parse_draft(DraftType.TASK, {"title": "   "}).draft.title is None

    def test_labels_from_comma_string(self):
        task = parse_draft(DraftType.TASK, {"tags": "home, errands,"}).draft
        assert task.labels == ("home", "errands")

    def test_challenge_legacy_names(self):
        parsed = parse_draft(
            DraftType.CHALLENGE,
            {"name": "Drink water", "duration": "21", "metricType": "counter", "targetValue": 8, "unit": "glasses"},
        )
        challenge = parsed.draft
        assert challenge.title == "Drink water"
        assert challenge.duration_days == 21
        assert challenge.challenge_kind == ChallengeKind.COUNT
        assert challenge.daily_target == 8.0
        assert challenge.daily_target_unit == "glasses"

    def test_event_date_and_times(self):
        """The older date + startTime shape becomes datetimes."""
        event = parse_draft(
            DraftType.EVENT, {"title": "Dentist", "date": "2025-03-10", "startTime": "14:30", "endTime": "15:00"}
        ).draft
        assert isinstance(event, EventDraft)
        assert event.start_datetime == datetime(2025, 3, 10, 14, 30)
        assert event.end_datetime == datetime(2025, 3, 10, 15, 0)

    def test_event_date_only_start(self):
        event = parse_draft(DraftType.EVENT, {"startDateTime": "2025-03-10"}).draft
        assert event.start_datetime == datetime(2025, 3, 10)

    def test_non_object_payload(self):
        """Anything but a mapping yields an all-default draft."""
        parsed = parse_draft(DraftType.TASK, ["not", "a", "dict"])
        assert parsed.draft == TaskDraft()
        assert "title" in parsed.absent_fields

    def test_bill_title_from_vendor(self):
        assert parse_draft(DraftType.BILL, {"vendor": "Netflix"}).draft.title == "Netflix"

    def test_unknown_keys_ignored(self):
        parsed = parse_draft(DraftType.NOTE, {"content": "hello", "mood": "great"})
        assert parsed.draft.content == "hello"
        assert parsed.malformed_fields == ()


class TestCoerceField:
    """Single-value coercion used for answers."""

    def test_choice_answer(self):
        assert coerce_field(DraftType.TASK, "life_area", "career") == ("life_area", LifeArea.CAREER)

    def test_camel_case_target(self):
        assert coerce_field(DraftType.BILL, "dueDate", "2025-03-03") == ("due_date", date(2025, 3, 3))

    def test_unknown_field(self):
        assert coerce_field(DraftType.TASK, "vendor", "ACME") is None

    def test_invalid_value(self):
        assert coerce_field(DraftType.CHALLENGE, "duration_days", "forever") is None
