"""Tests for the model response interpreter."""

import json
from decimal import Decimal

from smart_intake.drafts import BillDraft, DraftType, NoteDraft, TaskDraft
from smart_intake.interpreter import ResponseInterpreter, interpret, strip_code_fences


def _reply(**body) -> str:
    return json.dumps(body)


class TestFallback:
    """Unusable output degrades to a note holding the user's text."""

    def test_unparseable_output(self):
        """Broken JSON never raises and keeps the raw text."""
        turn = interpret("asdf{not json")

        assert turn.status == "READY"
        assert turn.intent_type == DraftType.NOTE
        assert isinstance(turn.draft, NoteDraft)
        assert turn.draft.content == "asdf{not json"
        assert turn.confidence <= 0.5
        assert turn.degraded is True
        assert "Edit to add more details" in turn.suggestions

    def test_fallback_text_preferred(self):
        """The user's input, not the model output, is kept when given."""
        turn = interpret("Sorry, I can't help with that.", fallback_text="call the plumber")
        assert turn.draft.content == "call the plumber"

    def test_top_level_array(self):
        turn = interpret("[1, 2, 3]", fallback_text="x")
        assert turn.degraded is True

    def test_unknown_intent(self):
        """An intent outside the six kinds is a top-level failure."""
        turn = interpret(_reply(status="READY", intentType="recipe", draft={}), fallback_text="pasta")
        assert turn.degraded is True
        assert turn.draft.content == "pasta"

    def test_empty_output(self):
        turn = interpret("", fallback_text="remember milk")
        assert turn.degraded is True
        assert turn.draft.content == "remember milk"


class TestParsing:
    """Well-formed and partially-formed output."""

    def test_complete_bill(self):
        raw = _reply(
            status="READY",
            intentType="bill",
            confidence=0.92,
            reasoning="A bill with amount and due date",
            draft={"vendor": "City Power", "amount": 120, "dueDate": "2025-03-03"},
            suggestions=["Set up autopay"],
        )
        turn = interpret(raw)

        assert turn.status == "READY"
        assert turn.intent_type == DraftType.BILL
        assert isinstance(turn.draft, BillDraft)
        assert turn.draft.amount == Decimal("120")
        assert turn.confidence == 0.92
        assert turn.suggestions == ("Set up autopay",)
        assert turn.degraded is False

    def test_code_fence_stripped(self):
        raw = "```json\n" + _reply(status="READY", intentType="note", draft={"content": "hi"}) + "\n```"
        turn = interpret(raw)
        assert turn.intent_type == DraftType.NOTE
        assert turn.draft.content == "hi"

    def test_json_inside_prose(self):
        raw = "Here you go:\n" + _reply(status="READY", intentType="task", draft={"title": "Pay rent"}) + "\nThanks!"
        assert interpret(raw).draft.title == "Pay rent"

    def test_older_key_names(self):
        """intentDetected / confidenceScore / clarification are accepted."""
        raw = _reply(
            status="NEEDS_CLARIFICATION",
            intentDetected="task",
            confidenceScore=0.4,
            draft={"title": "Something"},
            clarification={
                "title": "Quick question",
                "questions": [
                    {"id": "area", "question": "Which area?", "type": "single_choice",
                     "fieldToPopulate": "lifeArea", "options": [{"value": "career", "label": "Career"}]},
                ],
            },
        )
        turn = interpret(raw)
        assert turn.status == "NEEDS_CLARIFICATION"
        assert turn.confidence == 0.4
        assert turn.flow is not None
        assert turn.flow.questions[0].target_field == "life_area"

    def test_unknown_status_is_ready(self):
        assert interpret(_reply(status="MAYBE", intentType="task")).status == "READY"

    def test_missing_intent_is_task(self):
        turn = interpret(_reply(status="READY", draft={"title": "x"}))
        assert turn.intent_type == DraftType.TASK
        assert isinstance(turn.draft, TaskDraft)

    def test_malformed_fields_default(self):
        """Field-level failures default and are reported, not fatal."""
        turn = interpret(_reply(status="READY", intentType="task", draft={"title": "x", "estimatedMinutes": "soon"}))
        assert turn.degraded is False
        assert turn.draft.estimated_minutes == 30
        assert turn.malformed_fields == ("estimated_minutes",)

    def test_confidence_clamped(self):
        assert interpret(_reply(status="READY", intentType="note", confidence=7)).confidence == 1.0
        assert interpret(_reply(status="READY", intentType="note", confidence="high")).confidence == 0.5

    def test_suggest_alternative(self):
        turn = interpret(
            _reply(
                status="SUGGEST_ALTERNATIVE",
                intentType="challenge",
                originalIntent="task",
                alternativeReason="Daily habits work better as challenges",
                draft={"title": "Meditate daily"},
            )
        )
        assert turn.intent_type == DraftType.CHALLENGE
        assert turn.original_intent == DraftType.TASK
        assert turn.alternative_reason == "Daily habits work better as challenges"

    def test_flow_capped_to_budget(self):
        questions = [
            {"question": f"Q{i}?", "fieldToPopulate": name, "type": "free_text"}
            for i, name in enumerate(["title", "description", "due_date", "labels"])
        ]
        raw = _reply(status="NEEDS_CLARIFICATION", intentType="task", clarificationFlow={"questions": questions})
        turn = ResponseInterpreter(question_budget=2).interpret(raw)
        assert len(turn.flow.questions) == 2

    def test_image_analysis(self):
        raw = _reply(
            status="READY",
            intentType="bill",
            draft={"vendor": "Gas Co"},
            imageAnalysis={"detectedType": "bill", "extractedText": "Amount due $45", "confidence": 0.8},
        )
        analysis = interpret(raw).image_analysis
        assert analysis.detected_type == "bill"
        assert analysis.extracted_text == "Amount due $45"
        assert analysis.extracted_data == {}


def test_strip_code_fences_plain_text_untouched():
    assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'
    assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'
