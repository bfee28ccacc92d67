"""OpenAI Responses API client for script generation."""

from dataclasses import dataclass

from openai import AsyncOpenAI, OpenAIError

from meditation_studio.domain.errors import UpstreamEngineError
from meditation_studio.services.scripts import ScriptClient


@dataclass
class OpenAIScriptClient(ScriptClient):
    """Script client backed by OpenAI Responses API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAIScriptClient":
        """Create an OpenAI script client."""
        return cls(client=AsyncOpenAI(api_key=api_key))

    async def generate(
        self,
        *,
        model: str,
        prompt: str,
        reasoning_effort: str | None,
        max_output_tokens: int,
        store: bool,
    ) -> str:
        """Call OpenAI Responses API and return the output text."""
        request_payload: dict[str, object] = {
            "model": model,
            "input": [
                {
                    "role": "user",
                    "content": [{"type": "input_text", "text": prompt}],
                }
            ],
            "max_output_tokens": max_output_tokens,
            "store": store,
        }
        if reasoning_effort:
            request_payload["reasoning"] = {"effort": reasoning_effort}

        try:
            response = await self.client.responses.create(**request_payload)
        except OpenAIError as exc:
            raise UpstreamEngineError(f"Script engine request failed: {exc}") from exc
        output_text = response.output_text
        if not output_text:
            raise UpstreamEngineError("OpenAI returned an empty response")
        return output_text

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()
