"""Speech synthesis for chunked SSML scripts."""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Protocol

from meditation_studio.domain.artifacts import ArtifactKey
from meditation_studio.domain.errors import (
    ChunkingError,
    InputValidationError,
    UpstreamEngineError,
)
from meditation_studio.services.chunking import DEFAULT_MAX_LENGTH, chunk_ssml
from meditation_studio.services.storage import AUDIO_CONTENT_TYPE, ArtifactStore

_logger = logging.getLogger(__name__)

_TAG_OR_TEXT = re.compile(r"(<[^>]*>)")
_BARE_AMPERSAND = re.compile(r"&(?!(?:[A-Za-z]+|#\d+|#x[0-9A-Fa-f]+);)")


class SpeechClient(Protocol):
    """Interface for the speech engine."""

    async def synthesize(self, ssml: str, voice: "VoiceSettings") -> bytes:
        """Return encoded audio for one SSML payload, or empty bytes."""


@dataclass(frozen=True)
class VoiceSettings:
    """Voice and format parameters sent with every chunk."""

    voice_id: str = "Danielle"
    engine: str = "generative"
    language_code: str = "en-US"
    output_format: str = "mp3"
    sample_rate: str = "44100"


def normalize_script(script: str) -> str:
    """Escape apostrophes and bare ampersands in text outside tags."""
    parts = _TAG_OR_TEXT.split(script)
    for index, part in enumerate(parts):
        if index % 2:
            continue
        part = _BARE_AMPERSAND.sub("&amp;", part)
        parts[index] = part.replace("'", "&apos;")
    return "".join(parts)


@dataclass
class SpeechService:
    """Synthesizes a script chunk by chunk and stores the joined audio."""

    client: SpeechClient
    store: ArtifactStore
    bucket: str
    voice: VoiceSettings
    max_chunk_length: int = DEFAULT_MAX_LENGTH
    concurrency: int = 1

    async def synthesize(self, key: ArtifactKey, script: str) -> str:
        """Synthesize the script and return the speech artifact's storage path."""
        if not key.user_id:
            raise InputValidationError("userID is required")
        if not script or not script.strip():
            raise InputValidationError("Script content is empty")

        try:
            chunks = chunk_ssml(normalize_script(script), self.max_chunk_length)
        except ChunkingError as exc:
            raise InputValidationError(str(exc)) from exc
        _logger.info(
            "Synthesizing %s chunk(s): session=%s", len(chunks), key.session_id
        )
        if self.concurrency > 1:
            buffers = await self._synthesize_parallel(chunks)
        else:
            buffers = [
                await self._synthesize_chunk(index, chunk)
                for index, chunk in enumerate(chunks)
            ]

        storage_path = key.path("mp3")
        await asyncio.to_thread(
            self.store.put,
            self.bucket,
            storage_path,
            b"".join(buffers),
            AUDIO_CONTENT_TYPE,
        )
        _logger.info("Speech stored: session=%s path=%s", key.session_id, storage_path)
        return storage_path

    async def _synthesize_parallel(self, chunks: list[str]) -> list[bytes]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(index: int, chunk: str) -> bytes:
            async with semaphore:
                return await self._synthesize_chunk(index, chunk)

        # gather keeps results in chunk order regardless of completion order
        return list(
            await asyncio.gather(
                *(run(index, chunk) for index, chunk in enumerate(chunks))
            )
        )

    async def _synthesize_chunk(self, index: int, chunk: str) -> bytes:
        _logger.info("Processing chunk %s (length %s)", index + 1, len(chunk))
        audio = await self.client.synthesize(chunk, self.voice)
        if not audio:
            raise UpstreamEngineError(f"No audio stream returned for chunk {index + 1}")
        return audio
