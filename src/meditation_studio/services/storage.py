"""Artifact storage interface."""

from typing import Protocol

AUDIO_CONTENT_TYPE = "audio/mpeg"
JSON_CONTENT_TYPE = "application/json"


class ArtifactStore(Protocol):
    """Binary object storage partitioned by bucket."""

    def put(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        """Write an object; existing objects are never overwritten."""

    def get(self, bucket: str, key: str) -> bytes:
        """Read an object, failing when it is missing."""

    def get_optional(self, bucket: str, key: str) -> bytes | None:
        """Read an object, returning None when it is missing."""
