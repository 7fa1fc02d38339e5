"""In-flight clarification sessions.

A session exists only between a turn that asked the user something and the
turn that finalizes the draft. Expiry is stamped when a session is written
and enforced when it is read; ``run_sweeper`` only bounds memory.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Callable

from .attachments import OriginalInput
from .clarification import ClarificationFlow
from .drafts import Draft, DraftType

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ConversationSession:
    """State carried between turns of one clarification conversation."""

    session_id: str
    user_id: str
    intent_type: DraftType
    draft: Draft
    original_input: OriginalInput
    questions_asked: int
    expires_at: datetime
    created_at: datetime
    flow: ClarificationFlow | None = None

    # Alternative suggestion state
    awaiting_confirmation: bool = False
    original_intent: DraftType | None = None
    alternative_reason: str | None = None

    confidence: float = 0.5
    reasoning: str = ""

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class SessionStore(ABC):
    """Keyed storage for sessions; implementations must make each call atomic."""

    @abstractmethod
    def put(self, session: ConversationSession) -> None:
        """Insert or replace a session."""

    @abstractmethod
    def get(self, session_id: str) -> ConversationSession | None:
        """Return a live session, or None if absent or expired."""

    @abstractmethod
    def remove(self, session_id: str) -> bool:
        """Delete a session. Returns True if one was stored."""

    @abstractmethod
    def take(self, session_id: str, user_id: str | None = None) -> ConversationSession | None:
        """Atomically remove and return a live session.

        Of two concurrent ``take`` calls for the same id at most one gets
        the session. When ``user_id`` is given, another user's session is
        left in place and None is returned.
        """

    @abstractmethod
    def sweep_expired(self) -> int:
        """Drop expired sessions. Returns how many were dropped."""

    @abstractmethod
    def __len__(self) -> int: ...


class InMemorySessionStore(SessionStore):
    """Process-local session store guarded by a lock."""

    def __init__(self, clock: Clock = utc_now):
        self._sessions: dict[str, ConversationSession] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def put(self, session: ConversationSession) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def get(self, session_id: str) -> ConversationSession | None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session.is_expired(self._clock()):
                del self._sessions[session_id]
                logger.debug(f"Session {session_id} expired on read")
                return None
            return session

    def remove(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def take(self, session_id: str, user_id: str | None = None) -> ConversationSession | None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if session.is_expired(self._clock()):
                del self._sessions[session_id]
                return None
            if user_id is not None and session.user_id != user_id:
                return None
            del self._sessions[session_id]
            return session

    def sweep_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if s.is_expired(now)]
            for sid in expired:
                del self._sessions[sid]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


async def run_sweeper(store: SessionStore, interval: float) -> None:
    """Periodically drop expired sessions until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            dropped = store.sweep_expired()
        except Exception as e:
            logger.error(f"Session sweep failed: {e}")
            continue
        if dropped:
            logger.info(f"Swept {dropped} expired session(s)")
