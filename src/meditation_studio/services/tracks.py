"""Backing track selection."""

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass, field

from meditation_studio.domain.errors import NoSuitableTrackError
from meditation_studio.domain.tracks import BackingTrack

_logger = logging.getLogger(__name__)


@dataclass
class TrackSelector:
    """Picks a random catalog track that outlasts the speech."""

    catalog: Sequence[BackingTrack]
    rng: random.Random = field(default_factory=random.SystemRandom)

    def candidates(self, speech_duration_seconds: float) -> list[BackingTrack]:
        """Return every track whose capacity exceeds the speech duration."""
        return [track for track in self.catalog if track.fits(speech_duration_seconds)]

    def select(self, speech_duration_seconds: float) -> BackingTrack:
        """Choose uniformly among qualifying tracks; never force a short one."""
        qualifying = self.candidates(speech_duration_seconds)
        if not qualifying:
            raise NoSuitableTrackError(speech_duration_seconds)
        track = self.rng.choice(qualifying)
        _logger.info(
            "Selected track %s (%ss) for %.1fs of speech among %s candidate(s)",
            track.path,
            track.duration_capacity_seconds,
            speech_duration_seconds,
            len(qualifying),
        )
        return track
