"""Turns raw language-model output into a typed intake turn.

The model is asked for JSON but is untrusted: output may be fenced, wrapped
in prose, truncated, or use older key names. Field-level problems degrade to
defaults (see ``smart_intake.schemas``). Anything that prevents reading the
top-level object produces a degraded note holding the user's text, so input
is never dropped.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Literal

from .clarification import DEFAULT_QUESTION_BUDGET, ClarificationFlow, ClarificationQuestion
from .drafts import Draft, DraftType, fallback_note
from .schemas import parse_draft

logger = logging.getLogger(__name__)

TurnStatus = Literal["READY", "NEEDS_CLARIFICATION", "SUGGEST_ALTERNATIVE"]

_STATUSES: tuple[TurnStatus, ...] = ("READY", "NEEDS_CLARIFICATION", "SUGGEST_ALTERNATIVE")

DEGRADED_CONFIDENCE = 0.3
DEFAULT_CONFIDENCE = 0.5
DEGRADED_REASONING = "I couldn't fully understand that, so I saved it as a quick note."
DEGRADED_SUGGESTIONS = ("Edit to add more details", "Convert to a different type")

_FENCE_START = re.compile(r"^\s*```[a-zA-Z]*\s*")
_FENCE_END = re.compile(r"\s*```\s*$")


class _Unreadable(Exception):
    """Top-level structure of the model output could not be used."""


@dataclass(frozen=True)
class ImageAnalysis:
    """What the model saw in an image attachment."""

    detected_type: str | None = None
    extracted_text: str | None = None
    extracted_data: dict[str, Any] = field(default_factory=dict)
    confidence: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "detected_type": self.detected_type,
            "extracted_text": self.extracted_text,
            "extracted_data": self.extracted_data,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class InterpretedTurn:
    """One interpreted model response."""

    status: TurnStatus
    intent_type: DraftType
    draft: Draft
    confidence: float
    reasoning: str = ""
    suggestions: tuple[str, ...] = ()
    flow: ClarificationFlow | None = None
    alternative_reason: str | None = None
    original_intent: DraftType | None = None
    image_analysis: ImageAnalysis | None = None
    degraded: bool = False
    malformed_fields: tuple[str, ...] = ()
    absent_fields: tuple[str, ...] = ()


def strip_code_fences(raw: str) -> str:
    """Remove a surrounding ```json ... ``` fence, if any."""
    text = raw.strip()
    if text.startswith("```"):
        text = _FENCE_START.sub("", text, count=1)
        text = _FENCE_END.sub("", text)
    return text.strip()


def _load_object(raw: str) -> dict[str, Any]:
    text = strip_code_fences(raw)
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise _Unreadable("no JSON object found")
        try:
            data = json.loads(text[start : end + 1])
        except json.JSONDecodeError as e:
            raise _Unreadable(f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise _Unreadable(f"top level is {type(data).__name__}, not an object")
    return data


def _draft_type(value: Any) -> DraftType | None:
    if isinstance(value, DraftType):
        return value
    if not isinstance(value, str):
        return None
    try:
        return DraftType(value.strip().lower())
    except ValueError:
        return None


def _confidence(value: Any) -> float:
    if isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if number != number:  # NaN
        return DEFAULT_CONFIDENCE
    return min(max(number, 0.0), 1.0)


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _parse_flow(node: Any, kind: DraftType, budget: int) -> ClarificationFlow | None:
    if not isinstance(node, dict):
        return None
    questions: list[ClarificationQuestion] = []
    seen: set[str] = set()
    raw_questions = node.get("questions")
    if isinstance(raw_questions, list):
        for raw in raw_questions:
            if not isinstance(raw, dict):
                continue
            question = ClarificationQuestion.from_dict(raw, kind)
            if question is None or question.id in seen:
                continue
            seen.add(question.id)
            questions.append(question)
    return ClarificationFlow(
        title=str(node.get("title") or "A few quick questions"),
        description=str(node.get("description") or ""),
        questions=tuple(questions[:budget]),
        total_budget=budget,
    )


def _parse_image_analysis(node: Any) -> ImageAnalysis | None:
    if not isinstance(node, dict):
        return None
    extracted = node.get("extractedData")
    confidence = node.get("confidence")
    return ImageAnalysis(
        detected_type=node.get("detectedType") if isinstance(node.get("detectedType"), str) else None,
        extracted_text=node.get("extractedText") if isinstance(node.get("extractedText"), str) else None,
        extracted_data=extracted if isinstance(extracted, dict) else {},
        confidence=_confidence(confidence) if confidence is not None else None,
    )


def degraded_turn(text: str, reason: str | None = None) -> InterpretedTurn:
    """Terminal fallback: a READY note carrying the user's text."""
    return InterpretedTurn(
        status="READY",
        intent_type=DraftType.NOTE,
        draft=fallback_note(text),
        confidence=DEGRADED_CONFIDENCE,
        reasoning=reason or DEGRADED_REASONING,
        suggestions=DEGRADED_SUGGESTIONS,
        degraded=True,
    )


class ResponseInterpreter:
    """Parses model output into ``InterpretedTurn`` values."""

    def __init__(self, question_budget: int = DEFAULT_QUESTION_BUDGET):
        self.question_budget = question_budget

    def interpret(self, raw: str, fallback_text: str | None = None) -> InterpretedTurn:
        """Interpret raw model output. Never raises.

        Args:
            raw: Text returned by the model
            fallback_text: User text to keep if the output is unusable;
                defaults to ``raw`` itself

        Returns:
            The interpreted turn, degraded to a note on top-level failure
        """
        keep = fallback_text if fallback_text is not None else raw
        try:
            return self._interpret(raw or "")
        except _Unreadable as e:
            logger.warning(f"Unusable model output ({e}); falling back to note")
            logger.debug(f"Raw model output: {raw!r}")
            return degraded_turn(keep)

    def _interpret(self, raw: str) -> InterpretedTurn:
        data = _load_object(raw)

        raw_status = str(data.get("status") or "").strip().upper()
        if raw_status in _STATUSES:
            status: TurnStatus = raw_status  # type: ignore[assignment]
        else:
            if raw_status:
                logger.warning(f"Unknown status '{raw_status}', treating as READY")
            status = "READY"

        raw_intent = _first(data, "intentType", "intentDetected", "intent_type")
        if raw_intent is None:
            intent = DraftType.TASK
        else:
            intent = _draft_type(raw_intent)
            if intent is None:
                raise _Unreadable(f"unknown intent type {raw_intent!r}")

        parsed = parse_draft(intent, data.get("draft"))
        if parsed.malformed_fields:
            logger.info(f"Defaulted malformed {intent.value} fields: {', '.join(parsed.malformed_fields)}")

        suggestions = data.get("suggestions")
        reasoning = data.get("reasoning")
        alternative_reason = data.get("alternativeReason")

        original_intent = None
        if status == "SUGGEST_ALTERNATIVE":
            original_intent = _draft_type(data.get("originalIntent")) or DraftType.TASK

        return InterpretedTurn(
            status=status,
            intent_type=intent,
            draft=parsed.draft,
            confidence=_confidence(_first(data, "confidence", "confidenceScore")),
            reasoning=reasoning if isinstance(reasoning, str) else "",
            suggestions=tuple(s for s in suggestions if isinstance(s, str)) if isinstance(suggestions, list) else (),
            flow=_parse_flow(
                _first(data, "clarificationFlow", "clarification"), intent, self.question_budget
            ),
            alternative_reason=alternative_reason if isinstance(alternative_reason, str) else None,
            original_intent=original_intent,
            image_analysis=_parse_image_analysis(data.get("imageAnalysis")),
            malformed_fields=parsed.malformed_fields,
            absent_fields=parsed.absent_fields,
        )


def interpret(raw: str, fallback_text: str | None = None) -> InterpretedTurn:
    """Interpret with the default question budget."""
    return ResponseInterpreter().interpret(raw, fallback_text)
