"""Pending draft endpoints."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ...approval import ApprovalAction
from ...drafts import DraftType
from ...schemas import parse_draft
from ..dependencies import current_user

router = APIRouter()


class CreateDraftRequest(BaseModel):
    """Request body for parking a client-built draft."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: DraftType
    draft: Dict[str, Any]
    session_id: Optional[str] = None


class DraftActionRequest(BaseModel):
    """Request body for approving, modifying or rejecting a draft."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    action: ApprovalAction
    modified_draft: Optional[Dict[str, Any]] = None
    modified_type: Optional[DraftType] = None


@router.post("")
async def create_draft(request: Request, body: CreateDraftRequest, user_id: str = Depends(current_user)):
    """Create a pending draft from a draft body."""
    approval = request.app.state.approval
    parsed = parse_draft(body.type, body.draft)
    pending = approval.submit(user_id, parsed.draft, session_id=body.session_id)
    result = pending.to_dict()
    result["malformed_fields"] = list(parsed.malformed_fields)
    return result


@router.get("/pending")
async def list_pending(request: Request, user_id: str = Depends(current_user)):
    """List the caller's drafts awaiting approval (newest first)."""
    approval = request.app.state.approval
    drafts = approval.list_pending(user_id)
    return {"drafts": [d.to_dict() for d in drafts], "total": len(drafts)}


@router.get("/{draft_id}")
async def get_draft(request: Request, draft_id: str, user_id: str = Depends(current_user)):
    """Get one of the caller's drafts."""
    approval = request.app.state.approval
    return approval.get(user_id, draft_id).to_dict()


@router.post("/{draft_id}/action")
async def apply_action(
    request: Request,
    draft_id: str,
    body: DraftActionRequest,
    user_id: str = Depends(current_user),
):
    """Approve, modify or reject a draft.

    For ``modify``, ``modified_draft`` holds the replacement fields, parsed as
    ``modified_type`` (defaults to the pending draft's type).
    """
    approval = request.app.state.approval
    modified = None
    if body.modified_draft is not None:
        pending = approval.get(user_id, draft_id)
        kind = body.modified_type or pending.draft.kind
        modified = parse_draft(kind, body.modified_draft).draft
    elif body.action == ApprovalAction.MODIFY:
        raise HTTPException(status_code=400, detail="modified_draft is required for modify")

    result = await approval.apply(user_id, draft_id, body.action, modified_draft=modified)
    return result.to_dict()
