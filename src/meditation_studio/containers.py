"""Dependency container wiring for the pipeline."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from meditation_studio.adapters.ffmpeg_toolkit import FfmpegToolkit
from meditation_studio.adapters.openai_script_client import OpenAIScriptClient
from meditation_studio.adapters.polly_speech_client import PollySpeechClient
from meditation_studio.adapters.supabase_artifact_store import SupabaseArtifactStore
from meditation_studio.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from meditation_studio.config import Settings, parse_track_catalog
from meditation_studio.services.mixing import MixService
from meditation_studio.services.scripts import ScriptService
from meditation_studio.services.sessions import SessionService
from meditation_studio.services.speech import SpeechService, VoiceSettings
from meditation_studio.services.tracks import TrackSelector
from meditation_studio.services.workflow import WorkflowOrchestrator


@dataclass
class AppContainer:
    """Holds process-wide clients and the services built on them."""

    settings: Settings
    session_service: SessionService
    script_service: ScriptService
    speech_service: SpeechService
    mix_service: MixService
    orchestrator: WorkflowOrchestrator
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    artifact_store = SupabaseArtifactStore(supabase_client)
    session_service = SessionService(
        SupabaseSessionRepository(
            supabase_client, table=resolved_settings.session_table
        )
    )
    script_client = OpenAIScriptClient.create(resolved_settings.openai_api_key)
    script_service = ScriptService(
        client=script_client,
        store=artifact_store,
        bucket=resolved_settings.script_bucket,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        max_output_tokens=resolved_settings.openai_max_output_tokens,
        store_responses=resolved_settings.openai_store,
    )
    speech_service = SpeechService(
        client=PollySpeechClient.create(resolved_settings.aws_region),
        store=artifact_store,
        bucket=resolved_settings.speech_bucket,
        voice=VoiceSettings(
            voice_id=resolved_settings.polly_voice_id,
            engine=resolved_settings.polly_engine,
            language_code=resolved_settings.polly_language_code,
            output_format=resolved_settings.polly_output_format,
            sample_rate=resolved_settings.polly_sample_rate,
        ),
        max_chunk_length=resolved_settings.tts_max_chars,
        concurrency=resolved_settings.tts_concurrency,
    )
    mix_service = MixService(
        toolkit=FfmpegToolkit(
            ffmpeg_binary=resolved_settings.ffmpeg_binary,
            ffprobe_binary=resolved_settings.ffprobe_binary,
        ),
        store=artifact_store,
        track_selector=TrackSelector(
            parse_track_catalog(resolved_settings.backing_tracks)
        ),
        session_service=session_service,
        speech_bucket=resolved_settings.speech_bucket,
        track_bucket=resolved_settings.backing_track_bucket,
        final_bucket=resolved_settings.final_bucket,
        cover_art_key=resolved_settings.cover_art_key,
    )
    orchestrator = WorkflowOrchestrator(
        script_service=script_service,
        speech_service=speech_service,
        mix_service=mix_service,
        session_service=session_service,
        timeout_seconds=resolved_settings.workflow_timeout_seconds,
    )

    async def close_resources() -> None:
        await script_client.close()

    return AppContainer(
        settings=resolved_settings,
        session_service=session_service,
        script_service=script_service,
        speech_service=speech_service,
        mix_service=mix_service,
        orchestrator=orchestrator,
        close_resources=close_resources,
    )
