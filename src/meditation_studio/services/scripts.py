"""Meditation script generation."""

import asyncio
import json
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from meditation_studio.domain.artifacts import ArtifactKey, GeneratedScript
from meditation_studio.domain.errors import UpstreamEngineError
from meditation_studio.domain.requests import PersonalizationInput
from meditation_studio.services.storage import JSON_CONTENT_TYPE, ArtifactStore

_logger = logging.getLogger(__name__)

SCRIPT_INSTRUCTIONS = """\
Generate a meditation script using valid SSML for a generative text-to-speech voice.

Use only these SSML tags: <speak>, <prosody> and <break>.
Do not use unsupported tags like <p>, <s>, <audio>, <voice>, or any custom or non-standard tags.

Structure the script with calm pacing, using <break> tags where natural pauses would occur.
Use <prosody rate="slow"> for slower speech if needed. Do not use <prosody> to change pitch or volume.
Wrap the entire script in a <speak> tag.

Start with a 5-second pause using a <break> tag.

The script should be between 700 and 1400 words.
Incorporate detailed guidance, descriptive imagery, thematic sections (such as body scans,
visualizations, and affirmations), and strategic pauses to enhance the meditative experience.
Each script should be unique and not repeat previous scripts.

Output only the SSML code, no explanations or titles."""

_CODE_FENCE = re.compile(r"```(?:xml|ssml)?\s*|```", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")
_SPEAK_TAG = re.compile(r"</?speak\b[^>]*>", re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]*>")


class ScriptClient(Protocol):
    """Interface for the text-generation engine."""

    async def generate(
        self,
        *,
        model: str,
        prompt: str,
        reasoning_effort: str | None,
        max_output_tokens: int,
        store: bool,
    ) -> str:
        """Return the generated text for a prompt."""


def build_prompt(personalization: PersonalizationInput) -> str:
    """Append the session's personalization to the fixed instructions."""
    if personalization is None:
        return SCRIPT_INSTRUCTIONS
    if isinstance(personalization, str):
        details = personalization.strip()
    else:
        details = json.dumps(personalization, indent=2, ensure_ascii=False)
    if not details:
        return SCRIPT_INSTRUCTIONS
    return (
        f"{SCRIPT_INSTRUCTIONS}\n\n"
        "Use the following session insights to personalize the script:\n"
        f"{details}"
    )


def clean_script(text: str) -> str:
    """Strip Markdown fences and normalize whitespace around SSML tags."""
    cleaned = _CODE_FENCE.sub("", text)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    if "<speak>" not in cleaned:
        cleaned = f"<speak>{cleaned}</speak>"
    cleaned = re.sub(r">\s+<", "><", cleaned)
    cleaned = re.sub(r">\s+", "> ", cleaned)
    return re.sub(r"\s+<", " <", cleaned)


def has_spoken_content(script: str) -> bool:
    """Return whether anything but markup remains in a script."""
    return bool(_ANY_TAG.sub("", _SPEAK_TAG.sub("", script)).strip())


@dataclass
class ScriptService:
    """Generates, cleans and stores the spoken script for a session."""

    client: ScriptClient
    store: ArtifactStore
    bucket: str
    model: str
    reasoning_effort: str | None = None
    max_output_tokens: int = 16000
    store_responses: bool = False
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(tz=UTC))

    async def generate(
        self, key: ArtifactKey, personalization: PersonalizationInput
    ) -> GeneratedScript:
        """Generate the script and persist it as the session's script artifact."""
        raw = await self.client.generate(
            model=self.model,
            prompt=build_prompt(personalization),
            reasoning_effort=self.reasoning_effort,
            max_output_tokens=self.max_output_tokens,
            store=self.store_responses,
        )
        script = clean_script(raw)
        if not has_spoken_content(script):
            raise UpstreamEngineError("Script engine returned no spoken content")

        storage_path = key.path("json")
        artifact = {
            "id": str(key.session_id),
            "timestamp": int(self.clock().timestamp() * 1000),
            "script": script,
        }
        await asyncio.to_thread(
            self.store.put,
            self.bucket,
            storage_path,
            json.dumps(artifact).encode("utf-8"),
            JSON_CONTENT_TYPE,
        )
        _logger.info(
            "Script stored: session=%s path=%s length=%s",
            key.session_id,
            storage_path,
            len(script),
        )
        return GeneratedScript(key=key, storage_path=storage_path, script=script)
