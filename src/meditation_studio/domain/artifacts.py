"""Storage keys for pipeline artifacts."""

from dataclasses import dataclass
from datetime import date
from uuid import UUID


@dataclass(frozen=True)
class ArtifactKey:
    """Content key shared by the script, speech and final artifacts of a session."""

    user_id: str
    day: date
    session_id: UUID

    def path(self, extension: str) -> str:
        """Return the object path ``{user}/{YYYY-MM-DD}/{session}.{ext}``."""
        return f"{self.user_id}/{self.day.isoformat()}/{self.session_id}.{extension}"


@dataclass(frozen=True)
class GeneratedScript:
    """Script artifact produced by the script stage."""

    key: ArtifactKey
    storage_path: str
    script: str


@dataclass(frozen=True)
class MixedAudio:
    """Outcome of the mix stage."""

    final_audio_path: str
    track_path: str
    speech_duration_seconds: float
    has_cover_art: bool
