"""Exceptions raised by the intake pipeline.

Only conditions the caller can act on are raised. Malformed model output and
model failures are recovered inside the orchestrator and never surface here.
"""


class IntakeError(Exception):
    """Base class for intake pipeline errors."""


class EmptyInputError(IntakeError, ValueError):
    """A turn carried no text, attachments or voice transcript."""


class SessionNotFoundError(IntakeError):
    """The conversation session does not exist, expired, or was finalized.

    Recoverable: the caller restarts the flow with a fresh input turn.
    """

    def __init__(self, session_id: str):
        super().__init__(f"Session not found or expired: {session_id}")
        self.session_id = session_id


class ModelServiceError(IntakeError):
    """The language model service failed after retries or is short-circuited."""


class DraftNotFoundError(IntakeError):
    """No pending draft exists with the given id."""

    def __init__(self, draft_id: str):
        super().__init__(f"Draft not found: {draft_id}")
        self.draft_id = draft_id


class DraftAccessError(IntakeError):
    """A user tried to act on a draft owned by someone else."""

    def __init__(self, draft_id: str, user_id: str):
        super().__init__(f"User {user_id} may not act on draft {draft_id}")
        self.draft_id = draft_id
        self.user_id = user_id
