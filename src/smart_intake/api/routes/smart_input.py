"""Smart input conversation endpoints."""

import base64
import binascii
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...attachments import Attachment, kind_from_mime
from ...clarification import Answer
from ..dependencies import current_user

router = APIRouter()


class _Body(BaseModel):
    """Accepts camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AttachmentBody(_Body):
    name: str
    mime_type: str = "application/octet-stream"
    kind: Optional[str] = None
    size: int = Field(default=0, ge=0)
    extracted_text: Optional[str] = None
    data_base64: Optional[str] = None

    def to_attachment(self) -> Attachment:
        data = None
        if self.data_base64:
            try:
                data = base64.b64decode(self.data_base64, validate=True)
            except (binascii.Error, ValueError):
                raise HTTPException(status_code=400, detail=f"Attachment {self.name} is not valid base64")
        return Attachment(
            name=self.name,
            kind=self.kind or kind_from_mime(self.mime_type),
            mime_type=self.mime_type,
            size=self.size or (len(data) if data else 0),
            extracted_text=self.extracted_text,
            data=data,
        )


class SmartInputRequest(_Body):
    """Request body for a new input turn."""

    text: Optional[str] = None
    attachments: List[AttachmentBody] = Field(default_factory=list)
    voice_transcript: Optional[str] = None


class AnswerBody(_Body):
    question_id: str
    value: Any = None
    metadata: Optional[dict] = None


class ClarifyRequest(_Body):
    """Request body for clarification answers."""

    session_id: str
    flow_id: Optional[str] = None
    answers: List[AnswerBody] = Field(default_factory=list)


class ConfirmAlternativeRequest(_Body):
    accepted: bool


@router.post("")
async def process_input(request: Request, body: SmartInputRequest, user_id: str = Depends(current_user)):
    """Interpret a new input.

    Returns:
        Turn: READY with a draft, or a clarification / alternative prompt
    """
    orchestrator = request.app.state.orchestrator
    turn = await orchestrator.process_input(
        user_id,
        text=body.text,
        attachments=[a.to_attachment() for a in body.attachments],
        voice_transcript=body.voice_transcript,
    )
    return turn.to_dict()


@router.post("/clarify")
async def submit_answers(request: Request, body: ClarifyRequest, user_id: str = Depends(current_user)):
    """Submit answers to the session's clarification questions."""
    orchestrator = request.app.state.orchestrator
    answers = [Answer(a.question_id, a.value, a.metadata) for a in body.answers]
    turn = await orchestrator.submit_clarification_answers(
        user_id, body.session_id, answers, flow_id=body.flow_id
    )
    return turn.to_dict()


@router.post("/{session_id}/confirm-alternative")
async def confirm_alternative(
    request: Request,
    session_id: str,
    body: ConfirmAlternativeRequest,
    user_id: str = Depends(current_user),
):
    """Accept or decline a suggested alternative type."""
    orchestrator = request.app.state.orchestrator
    turn = await orchestrator.confirm_alternative(session_id, body.accepted, user_id=user_id)
    return turn.to_dict()


@router.post("/{session_id}/save-to-pending")
async def save_to_pending(request: Request, session_id: str, user_id: str = Depends(current_user)):
    """Stop clarifying and keep the current draft for later approval."""
    orchestrator = request.app.state.orchestrator
    pending = await orchestrator.save_to_pending(user_id, session_id)
    return pending.to_dict()
