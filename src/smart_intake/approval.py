"""Draft approval: pending drafts and their conversion into real entities.

A finalized draft is parked here as a pending draft until its owner
approves, modifies, or rejects it. Approval hands the draft to the entity
creator registered for its kind.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Protocol
from uuid import uuid4

from .drafts import Draft, DraftType, draft_to_dict
from .errors import DraftAccessError, DraftNotFoundError
from .session_store import Clock, utc_now

logger = logging.getLogger(__name__)


class DraftStatus(str, Enum):
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    MODIFIED = "modified"
    REJECTED = "rejected"
    EXPIRED = "expired"


class ApprovalAction(str, Enum):
    APPROVE = "approve"
    MODIFY = "modify"
    REJECT = "reject"


@dataclass
class PendingDraft:
    """A finalized draft waiting for its owner's decision."""

    draft_id: str
    user_id: str
    draft: Draft
    created_at: datetime
    expires_at: datetime
    status: DraftStatus = DraftStatus.PENDING_APPROVAL
    session_id: str | None = None
    created_entity_id: str | None = None
    created_entity_kind: DraftType | None = None
    processed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "draft_id": self.draft_id,
            "user_id": self.user_id,
            "draft_type": self.draft.kind.value,
            "draft": draft_to_dict(self.draft),
            "status": self.status.value,
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "created_entity_id": self.created_entity_id,
            "created_entity_kind": self.created_entity_kind.value if self.created_entity_kind else None,
        }


@dataclass(frozen=True)
class ApprovalResult:
    success: bool
    draft_id: str
    action: ApprovalAction
    message: str
    created_entity_id: str | None = None
    created_entity_kind: DraftType | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "draft_id": self.draft_id,
            "action": self.action.value,
            "message": self.message,
            "created_entity_id": self.created_entity_id,
            "created_entity_kind": self.created_entity_kind.value if self.created_entity_kind else None,
        }


class EntityCreator(Protocol):
    """Downstream service that persists an approved draft."""

    async def create(self, user_id: str, draft: Draft) -> str: ...


class PlaceholderEntityCreator:
    """Creator used when no real service is wired for a kind."""

    async def create(self, user_id: str, draft: Draft) -> str:
        entity_id = f"{draft.kind.value}-{uuid4()}"
        logger.info(f"Created {draft.kind.value} {entity_id} for user {user_id}")
        return entity_id


class PendingDraftStore:
    """In-memory pending drafts keyed by id."""

    def __init__(self):
        self._drafts: dict[str, PendingDraft] = {}
        self._lock = threading.Lock()

    def add(self, pending: PendingDraft) -> None:
        with self._lock:
            self._drafts[pending.draft_id] = pending

    def get(self, draft_id: str) -> PendingDraft | None:
        with self._lock:
            return self._drafts.get(draft_id)

    def for_user(self, user_id: str, status: DraftStatus | None = None) -> list[PendingDraft]:
        """Drafts owned by a user, newest first."""
        with self._lock:
            drafts = [d for d in self._drafts.values() if d.user_id == user_id]
        if status is not None:
            drafts = [d for d in drafts if d.status == status]
        return sorted(drafts, key=lambda d: d.created_at, reverse=True)

    def __len__(self) -> int:
        with self._lock:
            return len(self._drafts)


@dataclass
class DraftApprovalService:
    """Approve, modify or reject pending drafts."""

    store: PendingDraftStore = field(default_factory=PendingDraftStore)
    creators: dict[DraftType, EntityCreator] = field(default_factory=dict)
    expiration_hours: int = 24
    clock: Clock = utc_now
    default_creator: EntityCreator = field(default_factory=PlaceholderEntityCreator)

    def submit(self, user_id: str, draft: Draft, session_id: str | None = None) -> PendingDraft:
        """Park a finalized draft for approval."""
        now = self.clock()
        pending = PendingDraft(
            draft_id=str(uuid4()),
            user_id=user_id,
            draft=draft,
            created_at=now,
            expires_at=now + timedelta(hours=self.expiration_hours),
            session_id=session_id,
        )
        self.store.add(pending)
        logger.info(f"Saved {draft.kind.value} draft {pending.draft_id} for user {user_id}")
        return pending

    def get(self, user_id: str, draft_id: str) -> PendingDraft:
        """Fetch a draft the user owns.

        Raises:
            DraftNotFoundError: No such draft
            DraftAccessError: Draft belongs to another user
        """
        pending = self.store.get(draft_id)
        if pending is None:
            raise DraftNotFoundError(draft_id)
        if pending.user_id != user_id:
            raise DraftAccessError(draft_id, user_id)
        return pending

    def list_pending(self, user_id: str) -> list[PendingDraft]:
        self._expire_stale(user_id)
        return self.store.for_user(user_id, DraftStatus.PENDING_APPROVAL)

    def _expire_stale(self, user_id: str) -> None:
        now = self.clock()
        for pending in self.store.for_user(user_id, DraftStatus.PENDING_APPROVAL):
            if now >= pending.expires_at:
                pending.status = DraftStatus.EXPIRED

    async def apply(
        self,
        user_id: str,
        draft_id: str,
        action: ApprovalAction,
        modified_draft: Draft | None = None,
    ) -> ApprovalResult:
        """Apply the owner's decision to a pending draft.

        Args:
            user_id: Requesting user; must own the draft
            draft_id: Pending draft id
            action: Approve, modify or reject
            modified_draft: Replacement draft, required for MODIFY

        Returns:
            ApprovalResult; ``success`` is False for drafts already processed
            or expired, and for MODIFY without a replacement

        Raises:
            DraftNotFoundError: No such draft
            DraftAccessError: Draft belongs to another user
        """
        pending = self.get(user_id, draft_id)

        if pending.status != DraftStatus.PENDING_APPROVAL:
            return ApprovalResult(False, draft_id, action, f"Draft already {pending.status.value}")

        now = self.clock()
        if now >= pending.expires_at:
            pending.status = DraftStatus.EXPIRED
            return ApprovalResult(False, draft_id, action, "Draft has expired")

        if action == ApprovalAction.REJECT:
            pending.status = DraftStatus.REJECTED
            pending.processed_at = now
            logger.info(f"Rejected draft {draft_id} for user {user_id}")
            return ApprovalResult(True, draft_id, action, "Draft rejected")

        if action == ApprovalAction.MODIFY:
            if modified_draft is None:
                return ApprovalResult(False, draft_id, action, "Modified draft is required")
            draft = modified_draft
        else:
            draft = pending.draft

        creator = self.creators.get(draft.kind, self.default_creator)
        try:
            entity_id = await creator.create(user_id, draft)
        except Exception as e:
            logger.exception(f"Creating {draft.kind.value} from draft {draft_id} failed")
            return ApprovalResult(False, draft_id, action, f"Failed to create {draft.kind.value}: {e}")

        pending.draft = draft
        pending.status = DraftStatus.MODIFIED if action == ApprovalAction.MODIFY else DraftStatus.APPROVED
        pending.processed_at = now
        pending.created_entity_id = entity_id
        pending.created_entity_kind = draft.kind
        logger.info(f"Draft {draft_id} {pending.status.value}: created {draft.kind.value} {entity_id}")
        return ApprovalResult(
            True,
            draft_id,
            action,
            f"{draft.kind.value.capitalize()} created",
            created_entity_id=entity_id,
            created_entity_kind=draft.kind,
        )
