"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

from meditation_studio.domain.tracks import BackingTrack

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    openai_api_key: str
    openai_model: str = "gpt-5.2"
    openai_reasoning_effort: str | None = None
    openai_store: bool = False
    openai_max_output_tokens: int = 16000
    workflow_token: str
    aws_region: str = "us-east-1"
    polly_voice_id: str = "Danielle"
    polly_engine: str = "generative"
    polly_language_code: str = "en-US"
    polly_output_format: str = "mp3"
    polly_sample_rate: str = "44100"
    tts_max_chars: int = 3000
    tts_concurrency: int = 1
    session_table: str = "meditation_sessions"
    script_bucket: str = "meditation-scripts"
    speech_bucket: str = "meditation-speech"
    final_bucket: str = "meditation-audio"
    backing_track_bucket: str = "backing-tracks"
    backing_tracks: str = "backing-track-1.mp3:600"
    cover_art_key: str | None = None
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    workflow_timeout_seconds: float = 900
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_track_catalog(raw: str) -> list[BackingTrack]:
    """Parse ``path:seconds`` entries separated by commas into catalog tracks."""
    tracks: list[BackingTrack] = []
    for chunk in raw.split(","):
        entry = chunk.strip()
        if not entry:
            continue
        path, separator, seconds = entry.rpartition(":")
        if not separator or not path.strip():
            raise ValueError(f"Backing track entry {entry!r} must be path:seconds")
        try:
            capacity = float(seconds)
        except ValueError as exc:
            raise ValueError(f"Backing track entry {entry!r} has no duration") from exc
        if capacity <= 0:
            raise ValueError(f"Backing track entry {entry!r} has no duration")
        tracks.append(
            BackingTrack(path=path.strip(), duration_capacity_seconds=capacity)
        )
    return tracks
