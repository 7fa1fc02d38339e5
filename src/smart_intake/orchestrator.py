"""Intake orchestrator: the turn-taking state machine.

A conversation starts with ``process_input`` and ends in a READY turn. In
between, the user may be asked clarification questions (bounded by the
question budget) or asked to confirm an alternative draft type. Session
state lives in a ``SessionStore`` that only this class writes to.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

from .approval import DraftApprovalService, PendingDraft
from .attachments import Attachment, AttachmentPreprocessor, OriginalInput
from .clarification import (
    CONFIRM_QUESTION_ID,
    Answer,
    ClarificationFlow,
    answers_by_field,
    apply_answers,
    confirmation_flow,
    generate_follow_up,
    missing_critical_fields,
)
from .config import IntakeConfig
from .drafts import Draft, DraftType, convert_draft, draft_to_dict, fill_best_effort
from .errors import EmptyInputError, IntakeError, ModelServiceError, SessionNotFoundError
from .interpreter import ImageAnalysis, InterpretedTurn, ResponseInterpreter, TurnStatus, degraded_turn
from .model_client import ModelClient
from .prompts import PromptLibrary, build_user_prompt
from .session_store import Clock, ConversationSession, InMemorySessionStore, SessionStore, utc_now
from .turn_logger import TurnLogEntry, TurnLogger

logger = logging.getLogger(__name__)

COMPLETE_CONFIDENCE = 0.95
BEST_EFFORT_CONFIDENCE = 0.7
ACCEPTED_ALTERNATIVE_CONFIDENCE = 0.9
DECLINED_ALTERNATIVE_CONFIDENCE = 0.6

_YES = {"yes", "y", "true", "1", "accept", "accepted", "ok", "confirm"}


@dataclass(frozen=True)
class Turn:
    """Response to one intake call."""

    session_id: str
    status: TurnStatus
    intent_type: DraftType
    confidence: float
    draft: Draft
    original_input: OriginalInput
    timestamp: datetime
    reasoning: str = ""
    suggestions: tuple[str, ...] = ()
    clarification_flow: ClarificationFlow | None = None
    expires_at: datetime | None = None
    original_intent: DraftType | None = None
    alternative_reason: str | None = None
    image_analysis: ImageAnalysis | None = None
    degraded: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "session_id": self.session_id,
            "status": self.status,
            "intent_type": self.intent_type.value,
            "confidence": self.confidence,
            "draft": draft_to_dict(self.draft),
            "reasoning": self.reasoning,
            "suggestions": list(self.suggestions),
            "clarification_flow": self.clarification_flow.to_dict() if self.clarification_flow else None,
            "original_input": self.original_input.to_dict(),
            "timestamp": self.timestamp.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "original_intent": self.original_intent.value if self.original_intent else None,
            "alternative_reason": self.alternative_reason,
            "image_analysis": self.image_analysis.to_dict() if self.image_analysis else None,
            "degraded": self.degraded,
        }


def _is_yes(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _YES


class IntakeOrchestrator:
    """Drives intake conversations from raw input to a READY draft."""

    def __init__(
        self,
        model: ModelClient,
        config: IntakeConfig | None = None,
        sessions: SessionStore | None = None,
        prompts: PromptLibrary | None = None,
        approval: DraftApprovalService | None = None,
        preprocessor: AttachmentPreprocessor | None = None,
        turn_logger: TurnLogger | None = None,
        clock: Clock = utc_now,
        timezone: str = "UTC",
    ):
        self.model = model
        self.config = config or IntakeConfig()
        self.clock = clock
        self.sessions = sessions if sessions is not None else InMemorySessionStore(clock=clock)
        self.prompts = prompts or PromptLibrary(self.config.prompts_dir, self.config.question_budget)
        self.approval = approval or DraftApprovalService(
            expiration_hours=self.config.draft_expiration_hours, clock=clock
        )
        self.preprocessor = preprocessor or AttachmentPreprocessor()
        self.turn_logger = turn_logger or TurnLogger()
        self.interpreter = ResponseInterpreter(self.config.question_budget)
        self.timezone = timezone

    @property
    def budget(self) -> int:
        return self.config.question_budget

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def process_input(
        self,
        user_id: str,
        text: str | None = None,
        attachments: list[Attachment] | None = None,
        voice_transcript: str | None = None,
    ) -> Turn:
        """Interpret a fresh input and start a conversation.

        Args:
            user_id: Requesting user
            text: Free text input
            attachments: Files sent with the input
            voice_transcript: Transcript when the input was spoken

        Returns:
            READY turn with a draft, or a turn asking the user something

        Raises:
            EmptyInputError: Nothing was provided
        """
        started = time.perf_counter()
        original = OriginalInput(
            text=(text or "").strip(),
            attachments=await self.preprocessor.summarize_all(attachments or []),
            voice_transcript=(voice_transcript or "").strip() or None,
        )
        if original.is_empty:
            raise EmptyInputError("Input must contain text, attachments or a voice transcript")

        session_id = str(uuid4())
        interpreted = await self._call_model(user_id, original)

        if interpreted.status == "SUGGEST_ALTERNATIVE" and not interpreted.degraded:
            turn = self._start_confirmation(session_id, user_id, original, interpreted)
        elif interpreted.status == "NEEDS_CLARIFICATION" and not interpreted.degraded:
            turn = self._start_clarification(session_id, user_id, original, interpreted)
        else:
            turn = self._ready_turn(
                session_id,
                original,
                interpreted.intent_type,
                interpreted.draft,
                interpreted.confidence,
                reasoning=interpreted.reasoning,
                suggestions=interpreted.suggestions,
                image_analysis=interpreted.image_analysis,
                degraded=interpreted.degraded,
            )

        self._record(turn, user_id, started)
        return turn

    async def submit_clarification_answers(
        self,
        user_id: str,
        session_id: str,
        answers: list[Answer],
        flow_id: str | None = None,
    ) -> Turn:
        """Merge answers into the session's draft and take the next step.

        Raises:
            SessionNotFoundError: Unknown, expired, finalized, or another user's session
        """
        started = time.perf_counter()
        session = self._claim(session_id, user_id)

        try:
            if session.awaiting_confirmation:
                confirm = next((a for a in answers if a.question_id == CONFIRM_QUESTION_ID), None)
                if confirm is not None:
                    turn = self._resolve_alternative(session, _is_yes(confirm.value))
                else:
                    self.sessions.put(session)
                    turn = self._session_turn(session, session.flow)
            else:
                turn = self._continue_clarification(session, answers, flow_id)
        except Exception:
            self.sessions.put(session)
            raise

        self._record(turn, user_id, started)
        return turn

    async def confirm_alternative(self, session_id: str, accepted: bool, user_id: str | None = None) -> Turn:
        """Accept or decline a suggested alternative draft type.

        Raises:
            SessionNotFoundError: Unknown, expired, or finalized session
            IntakeError: The session is not waiting for a confirmation
        """
        started = time.perf_counter()
        session = self._claim(session_id, user_id)
        if not session.awaiting_confirmation:
            self.sessions.put(session)
            raise IntakeError(f"Session {session_id} is not awaiting confirmation")

        try:
            turn = self._resolve_alternative(session, accepted)
        except Exception:
            self.sessions.put(session)
            raise

        self._record(turn, session.user_id, started)
        return turn

    async def save_to_pending(self, user_id: str, session_id: str) -> PendingDraft:
        """Stop clarifying and park the session's draft for approval."""
        session = self._claim(session_id, user_id)
        try:
            draft = fill_best_effort(session.draft, session.original_input.display_text())
            pending = self.approval.submit(user_id, draft, session_id=session_id)
        except Exception:
            self.sessions.put(session)
            raise
        logger.info(f"Session {session_id} saved to pending as draft {pending.draft_id}")
        return pending

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _call_model(self, user_id: str, original: OriginalInput) -> InterpretedTurn:
        now = self.clock()
        system_prompt = await self.prompts.system_prompt(original, today=now.date())
        user_prompt = build_user_prompt(user_id, original, now, self.timezone)
        fallback_text = original.display_text()
        timeout = self.config.model.timeout_seconds

        logger.info(f"Calling model for user {user_id} (prompt {self.prompts.key_for(original)})")
        try:
            raw = await asyncio.wait_for(self.model.complete(system_prompt, user_prompt), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"Model call timed out after {timeout}s; saving input as note")
            return degraded_turn(fallback_text)
        except ModelServiceError as e:
            logger.error(f"Model service failed: {e}; saving input as note")
            return degraded_turn(fallback_text)
        except Exception:
            logger.exception("Unexpected model client failure; saving input as note")
            return degraded_turn(fallback_text)

        logger.info(f"Model call finished for user {user_id}")
        return self.interpreter.interpret(raw, fallback_text=fallback_text)

    def _claim(self, session_id: str, user_id: str | None) -> ConversationSession:
        session = self.sessions.take(session_id, user_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def _start_clarification(
        self, session_id: str, user_id: str, original: OriginalInput, interpreted: InterpretedTurn
    ) -> Turn:
        draft = interpreted.draft
        flow = interpreted.flow
        if flow is None or not flow.questions:
            flow = generate_follow_up(draft, missing_critical_fields(draft), 0, self.budget)

        if not flow.questions:
            logger.info(f"Clarification requested but nothing to ask; finalizing {session_id}")
            return self._ready_turn(
                session_id,
                original,
                interpreted.intent_type,
                fill_best_effort(draft, original.display_text()),
                interpreted.confidence,
                reasoning=interpreted.reasoning,
                suggestions=interpreted.suggestions,
                image_analysis=interpreted.image_analysis,
            )

        now = self.clock()
        session = ConversationSession(
            session_id=session_id,
            user_id=user_id,
            intent_type=interpreted.intent_type,
            draft=draft,
            original_input=original,
            questions_asked=len(flow.questions),
            expires_at=now + timedelta(seconds=self.config.session_ttl_seconds),
            created_at=now,
            flow=flow,
            confidence=interpreted.confidence,
            reasoning=interpreted.reasoning,
        )
        self.sessions.put(session)
        logger.info(f"Session {session_id} created: asking {len(flow.questions)} question(s)")
        return self._session_turn(session, flow, suggestions=interpreted.suggestions,
                                  image_analysis=interpreted.image_analysis)

    def _start_confirmation(
        self, session_id: str, user_id: str, original: OriginalInput, interpreted: InterpretedTurn
    ) -> Turn:
        if self.budget < 1:
            logger.info(f"No question budget to confirm the alternative; finalizing {session_id}")
            return self._ready_turn(
                session_id,
                original,
                interpreted.intent_type,
                fill_best_effort(interpreted.draft, original.display_text()),
                interpreted.confidence,
                reasoning=interpreted.reasoning,
                suggestions=interpreted.suggestions,
                image_analysis=interpreted.image_analysis,
            )

        now = self.clock()
        flow = confirmation_flow(interpreted.intent_type, interpreted.alternative_reason)
        session = ConversationSession(
            session_id=session_id,
            user_id=user_id,
            intent_type=interpreted.intent_type,
            draft=interpreted.draft,
            original_input=original,
            questions_asked=len(flow.questions),
            expires_at=now + timedelta(seconds=self.config.session_ttl_seconds),
            created_at=now,
            flow=flow,
            awaiting_confirmation=True,
            original_intent=interpreted.original_intent or DraftType.TASK,
            alternative_reason=interpreted.alternative_reason,
            confidence=interpreted.confidence,
            reasoning=interpreted.reasoning,
        )
        self.sessions.put(session)
        logger.info(
            f"Session {session_id} created: suggesting {session.intent_type.value} "
            f"instead of {session.original_intent.value}"
        )
        return self._session_turn(session, flow, suggestions=interpreted.suggestions,
                                  image_analysis=interpreted.image_analysis)

    def _continue_clarification(
        self, session: ConversationSession, answers: list[Answer], flow_id: str | None
    ) -> Turn:
        if flow_id and session.flow and flow_id != session.flow.flow_id:
            logger.warning(f"Answers for session {session.session_id} reference stale flow {flow_id}")

        fields = answers_by_field(answers, session.flow, session.intent_type)
        draft = apply_answers(session.draft, fields)
        missing = missing_critical_fields(draft)

        if not missing:
            return self._finalize(session, draft, COMPLETE_CONFIDENCE)

        if session.questions_asked < self.budget:
            flow = generate_follow_up(draft, missing, session.questions_asked, self.budget)
            updated = replace(
                session,
                draft=draft,
                flow=flow,
                questions_asked=session.questions_asked + len(flow.questions),
            )
            self.sessions.put(updated)
            logger.info(
                f"Session {session.session_id}: {len(missing)} field(s) still missing, "
                f"asked {updated.questions_asked}/{self.budget}"
            )
            return self._session_turn(updated, flow)

        logger.info(f"Session {session.session_id}: question budget spent, finalizing best effort")
        return self._finalize(
            session,
            fill_best_effort(draft, session.original_input.display_text()),
            BEST_EFFORT_CONFIDENCE,
        )

    def _resolve_alternative(self, session: ConversationSession, accepted: bool) -> Turn:
        text = session.original_input.display_text()
        if accepted:
            draft = fill_best_effort(session.draft, text)
            confidence = ACCEPTED_ALTERNATIVE_CONFIDENCE
        else:
            target = session.original_intent or DraftType.TASK
            draft = fill_best_effort(convert_draft(session.draft, target, text), text)
            confidence = DECLINED_ALTERNATIVE_CONFIDENCE
        logger.info(
            f"Session {session.session_id}: alternative {'accepted' if accepted else 'declined'}, "
            f"finalizing {draft.kind.value}"
        )
        return self._finalize(session, draft, confidence)

    def _finalize(self, session: ConversationSession, draft: Draft, confidence: float) -> Turn:
        # The session was claimed with take(); not putting it back clears it.
        logger.info(f"Session {session.session_id} finalized as {draft.kind.value}")
        return self._ready_turn(
            session.session_id,
            session.original_input,
            draft.kind,
            draft,
            confidence,
            reasoning=session.reasoning,
        )

    def _ready_turn(
        self,
        session_id: str,
        original: OriginalInput,
        intent: DraftType,
        draft: Draft,
        confidence: float,
        reasoning: str = "",
        suggestions: tuple[str, ...] = (),
        image_analysis: ImageAnalysis | None = None,
        degraded: bool = False,
    ) -> Turn:
        now = self.clock()
        return Turn(
            session_id=session_id,
            status="READY",
            intent_type=intent,
            confidence=confidence,
            draft=draft,
            original_input=original,
            timestamp=now,
            reasoning=reasoning,
            suggestions=suggestions,
            expires_at=now + timedelta(hours=self.config.draft_expiration_hours),
            image_analysis=image_analysis,
            degraded=degraded,
        )

    def _session_turn(
        self,
        session: ConversationSession,
        flow: ClarificationFlow | None,
        suggestions: tuple[str, ...] = (),
        image_analysis: ImageAnalysis | None = None,
    ) -> Turn:
        return Turn(
            session_id=session.session_id,
            status="SUGGEST_ALTERNATIVE" if session.awaiting_confirmation else "NEEDS_CLARIFICATION",
            intent_type=session.intent_type,
            confidence=session.confidence,
            draft=session.draft,
            original_input=session.original_input,
            timestamp=self.clock(),
            reasoning=session.reasoning,
            suggestions=suggestions,
            clarification_flow=flow,
            expires_at=session.expires_at,
            original_intent=session.original_intent,
            alternative_reason=session.alternative_reason,
            image_analysis=image_analysis,
        )

    def _record(self, turn: Turn, user_id: str, started: float) -> None:
        self.turn_logger.log_turn(
            TurnLogEntry(
                session_id=turn.session_id,
                user_id=user_id,
                status=turn.status,
                intent_type=turn.intent_type.value,
                confidence=turn.confidence,
                degraded=turn.degraded,
                duration_ms=(time.perf_counter() - started) * 1000,
                metadata={
                    "questions": len(turn.clarification_flow.questions) if turn.clarification_flow else 0,
                },
            )
        )
