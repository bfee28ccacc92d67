"""Session lifecycle transitions."""

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from meditation_studio.domain.errors import SessionTransitionError
from meditation_studio.domain.sessions import SessionRecord, SessionStatus

_logger = logging.getLogger(__name__)


class SessionRepository(Protocol):
    """Persistence interface for meditation sessions."""

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""

    def transition_session(
        self,
        session_id: UUID,
        *,
        from_status: SessionStatus,
        to_status: SessionStatus,
        audio_path: str | None = None,
    ) -> SessionRecord | None:
        """Atomically move a session out of ``from_status``.

        Returns the updated session, or None when the session is missing or
        no longer in ``from_status``.
        """


@dataclass
class SessionService:
    """Applies the single terminal transition a session may make."""

    session_repository: SessionRepository

    def get(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""
        return self.session_repository.get_session(session_id)

    def complete(self, session_id: UUID, audio_path: str) -> SessionRecord:
        """Mark a requested session COMPLETED with its final audio path."""
        updated = self.session_repository.transition_session(
            session_id,
            from_status=SessionStatus.REQUESTED,
            to_status=SessionStatus.COMPLETED,
            audio_path=audio_path,
        )
        if updated is None:
            raise SessionTransitionError(
                f"Session {session_id} is missing or no longer REQUESTED"
            )
        _logger.info("Session completed: session=%s audio=%s", session_id, audio_path)
        return updated

    def fail(self, session_id: UUID) -> bool:
        """Mark a requested session FAILED; terminal sessions are left untouched."""
        updated = self.session_repository.transition_session(
            session_id,
            from_status=SessionStatus.REQUESTED,
            to_status=SessionStatus.FAILED,
        )
        if updated is None:
            current = self.session_repository.get_session(session_id)
            _logger.warning(
                "Session not marked failed: session=%s status=%s",
                session_id,
                current.status.value if current else "missing",
            )
            return False
        _logger.info("Session failed: session=%s", session_id)
        return True
