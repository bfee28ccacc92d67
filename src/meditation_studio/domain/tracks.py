"""Backing track catalog entries."""

from dataclasses import dataclass


@dataclass(frozen=True)
class BackingTrack:
    """Instrumental track available to underlay synthesized speech."""

    path: str
    duration_capacity_seconds: float

    def fits(self, speech_duration_seconds: float) -> bool:
        """Return whether the track outlasts speech of the given duration."""
        return self.duration_capacity_seconds > speech_duration_seconds
