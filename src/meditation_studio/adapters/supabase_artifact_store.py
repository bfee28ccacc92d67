"""Supabase Storage-backed artifact store."""

import posixpath
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from supabase import Client

from meditation_studio.domain.errors import ResourceError
from meditation_studio.services.storage import ArtifactStore


@contextmanager
def _storage_errors(action: str, bucket: str, key: str) -> Iterator[None]:
    try:
        yield
    except ResourceError:
        raise
    except Exception as exc:
        message = f"Storage {action} failed for {bucket}/{key}: {exc}"
        raise ResourceError(message) from exc


@dataclass
class SupabaseArtifactStore(ArtifactStore):
    """Artifact store over Supabase Storage buckets."""

    client: Client

    def put(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        """Upload an object; the bucket rejects existing keys."""
        with _storage_errors("upload", bucket, key):
            self.client.storage.from_(bucket).upload(
                path=key,
                file=data,
                file_options={"content-type": content_type, "upsert": "false"},
            )

    def get(self, bucket: str, key: str) -> bytes:
        """Download an object or raise when it is missing."""
        data = self.get_optional(bucket, key)
        if data is None:
            raise ResourceError(f"Object {bucket}/{key} not found")
        return data

    def get_optional(self, bucket: str, key: str) -> bytes | None:
        """Download an object, returning None when it is missing."""
        folder, name = posixpath.split(key)
        with _storage_errors("download", bucket, key):
            listing = self.client.storage.from_(bucket).list(folder, {"search": name})
            if not any(entry.get("name") == name for entry in listing or []):
                return None
            return self.client.storage.from_(bucket).download(key)
