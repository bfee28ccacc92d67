"""Amazon Polly client for SSML speech synthesis."""

import asyncio
from contextlib import closing
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from meditation_studio.domain.errors import UpstreamEngineError
from meditation_studio.services.speech import SpeechClient, VoiceSettings


@dataclass
class PollySpeechClient(SpeechClient):
    """Speech client backed by Polly's SynthesizeSpeech."""

    client: Any

    @classmethod
    def create(cls, region_name: str) -> "PollySpeechClient":
        """Create a Polly client for the given region."""
        return cls(client=boto3.client("polly", region_name=region_name))

    async def synthesize(self, ssml: str, voice: VoiceSettings) -> bytes:
        """Synthesize one SSML payload without blocking the event loop."""
        return await asyncio.to_thread(self._synthesize, ssml, voice)

    def _synthesize(self, ssml: str, voice: VoiceSettings) -> bytes:
        try:
            response = self.client.synthesize_speech(
                Engine=voice.engine,
                Text=ssml,
                TextType="ssml",
                VoiceId=voice.voice_id,
                LanguageCode=voice.language_code,
                OutputFormat=voice.output_format,
                SampleRate=voice.sample_rate,
            )
        except (BotoCoreError, ClientError) as exc:
            raise UpstreamEngineError(f"Speech engine request failed: {exc}") from exc
        stream = response.get("AudioStream")
        if stream is None:
            return b""
        with closing(stream):
            return stream.read()
