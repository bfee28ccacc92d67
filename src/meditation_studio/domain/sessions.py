"""Domain models for meditation sessions."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class SessionStatus(str, Enum):
    """Persisted lifecycle of a session."""

    REQUESTED = "REQUESTED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        """Return whether no further transition may leave this status."""
        return self is not SessionStatus.REQUESTED


@dataclass(frozen=True)
class SessionRecord:
    """Represents a persisted meditation session."""

    session_id: UUID
    user_id: str
    status: SessionStatus
    timestamp: datetime
    audio_path: str | None = None
