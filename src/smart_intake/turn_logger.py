"""Record of recent intake turns for operational visibility."""

from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


@dataclass
class TurnLogEntry:
    """A single intake turn as seen by the orchestrator."""

    session_id: str
    user_id: str
    status: str
    intent_type: str
    confidence: float
    degraded: bool = False
    duration_ms: float | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = field(default_factory=dict)

    # Unique identifier for clients
    entry_id: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "entry_id": self.entry_id,
            "session_id": self.session_id,
            "user_id": self.user_id,
            "status": self.status,
            "intent_type": self.intent_type,
            "confidence": self.confidence,
            "degraded": self.degraded,
            "duration_ms": self.duration_ms,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


class TurnLogger:
    """Keeps an in-memory ring buffer of turns."""

    def __init__(self, max_entries: int = 1000):
        """Initialize logger.

        Args:
            max_entries: Maximum entries to keep in memory (ring buffer)
        """
        self.entries: deque[TurnLogEntry] = deque(maxlen=max_entries)
        self._next_id: int = 1

    def log_turn(self, entry: TurnLogEntry) -> TurnLogEntry:
        """Store an entry, assigning its id."""
        entry.entry_id = self._next_id
        self._next_id += 1
        self.entries.append(entry)
        return entry

    def get_entries(
        self,
        limit: int = 100,
        offset: int = 0,
        user_id: str | None = None,
    ) -> list[TurnLogEntry]:
        """Get entries, newest first.

        Args:
            limit: Maximum entries to return
            offset: Skip this many entries
            user_id: Only entries for this user

        Returns:
            List of entries (newest first)
        """
        entries = list(self.entries)
        if user_id:
            entries = [e for e in entries if e.user_id == user_id]
        entries = list(reversed(entries))
        return entries[offset:offset + limit]
