"""Supabase-backed session repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from meditation_studio.domain.sessions import SessionRecord, SessionStatus
from meditation_studio.services.sessions import SessionRepository

_COLUMNS = "session_id, user_id, status, timestamp, audio_path"


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for meditation sessions."""

    client: Client
    table: str = "meditation_sessions"

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""
        response = (
            self.client.table(self.table)
            .select(_COLUMNS)
            .eq("session_id", str(session_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _to_record(response.data[0])

    def transition_session(
        self,
        session_id: UUID,
        *,
        from_status: SessionStatus,
        to_status: SessionStatus,
        audio_path: str | None = None,
    ) -> SessionRecord | None:
        """Update status only while the row still holds ``from_status``."""
        payload: dict[str, object] = {
            "status": to_status.value,
            "updated_at": datetime.now(tz=UTC).isoformat(),
        }
        if audio_path is not None:
            payload["audio_path"] = audio_path
        response = (
            self.client.table(self.table)
            .update(payload)
            .eq("session_id", str(session_id))
            .eq("status", from_status.value)
            .execute()
        )
        if not response.data:
            return None
        return _to_record(response.data[0])


def _to_record(row: dict[str, object]) -> SessionRecord:
    timestamp = row["timestamp"]
    if isinstance(timestamp, int | float):
        created = datetime.fromtimestamp(timestamp / 1000, tz=UTC)
    else:
        created = datetime.fromisoformat(str(timestamp))
    return SessionRecord(
        session_id=UUID(str(row["session_id"])),
        user_id=str(row["user_id"]),
        status=SessionStatus(row["status"]),
        timestamp=created,
        audio_path=row.get("audio_path"),
    )
