"""Mixing synthesized speech over a duration-matched backing track."""

import asyncio
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from meditation_studio.domain.artifacts import ArtifactKey, MixedAudio
from meditation_studio.domain.errors import InputValidationError
from meditation_studio.services.sessions import SessionService
from meditation_studio.services.storage import AUDIO_CONTENT_TYPE, ArtifactStore
from meditation_studio.services.tracks import TrackSelector

_logger = logging.getLogger(__name__)

MUSIC_GAIN = 0.2


class MediaToolkit(Protocol):
    """Interface for the duration probe and the external mixer."""

    async def probe_duration(self, path: Path) -> float:
        """Return the duration of an audio file in seconds."""

    async def mix(
        self,
        *,
        speech_path: Path,
        music_path: Path,
        output_path: Path,
        music_gain: float,
        cover_art_path: Path | None = None,
    ) -> None:
        """Overlay speech on attenuated music and write the output file."""


@dataclass
class MixService:
    """Builds the final artifact and completes the session."""

    toolkit: MediaToolkit
    store: ArtifactStore
    track_selector: TrackSelector
    session_service: SessionService
    speech_bucket: str
    track_bucket: str
    final_bucket: str
    cover_art_key: str | None = None

    async def mix(self, key: ArtifactKey, speech_path: str) -> MixedAudio:
        """Mix the session's speech artifact and mark the session COMPLETED."""
        if not speech_path:
            raise InputValidationError("speechAudioPath is required")

        with tempfile.TemporaryDirectory(prefix="meditation-mix-") as workdir:
            work = Path(workdir)
            speech_file = work / "speech.mp3"
            speech_file.write_bytes(
                await asyncio.to_thread(self.store.get, self.speech_bucket, speech_path)
            )
            duration = await self.toolkit.probe_duration(speech_file)

            track = self.track_selector.select(duration)
            music_file = work / "background.mp3"
            music_file.write_bytes(
                await asyncio.to_thread(self.store.get, self.track_bucket, track.path)
            )

            cover_file = await self._fetch_cover_art(work)
            output_file = work / "final-meditation.mp3"
            await self.toolkit.mix(
                speech_path=speech_file,
                music_path=music_file,
                output_path=output_file,
                music_gain=MUSIC_GAIN,
                cover_art_path=cover_file,
            )

            final_path = key.path("mp3")
            await asyncio.to_thread(
                self.store.put,
                self.final_bucket,
                final_path,
                output_file.read_bytes(),
                AUDIO_CONTENT_TYPE,
            )

        await asyncio.to_thread(
            self.session_service.complete, key.session_id, final_path
        )
        return MixedAudio(
            final_audio_path=final_path,
            track_path=track.path,
            speech_duration_seconds=duration,
            has_cover_art=cover_file is not None,
        )

    async def _fetch_cover_art(self, work: Path) -> Path | None:
        if not self.cover_art_key:
            return None
        data = await asyncio.to_thread(
            self.store.get_optional, self.track_bucket, self.cover_art_key
        )
        if data is None:
            _logger.info(
                "Cover art %s not found; mixing audio only", self.cover_art_key
            )
            return None
        cover_file = work / f"cover{Path(self.cover_art_key).suffix or '.jpg'}"
        cover_file.write_bytes(data)
        return cover_file
