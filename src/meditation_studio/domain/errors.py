"""Error taxonomy for the generation pipeline."""

from enum import Enum


class ErrorKind(str, Enum):
    """Category reported with every stage failure."""

    INPUT_VALIDATION = "INPUT_VALIDATION"
    UPSTREAM_ENGINE = "UPSTREAM_ENGINE"
    RESOURCE = "RESOURCE"
    TIMEOUT = "TIMEOUT"
    UNEXPECTED = "UNEXPECTED"


class PipelineError(Exception):
    """Base class for failures raised inside a pipeline stage."""

    kind = ErrorKind.UNEXPECTED


class InputValidationError(PipelineError):
    """Stage input is missing or empty."""

    kind = ErrorKind.INPUT_VALIDATION


class UpstreamEngineError(PipelineError):
    """Script or speech engine failed or returned unusable output."""

    kind = ErrorKind.UPSTREAM_ENGINE


class ResourceError(PipelineError):
    """Storage, catalog or external tool could not serve the stage."""

    kind = ErrorKind.RESOURCE


class NoSuitableTrackError(ResourceError):
    """No catalog track outlasts the speech artifact."""

    def __init__(self, speech_duration_seconds: float) -> None:
        super().__init__(
            f"No backing track longer than {speech_duration_seconds:.1f}s"
        )
        self.speech_duration_seconds = speech_duration_seconds


class MediaToolError(ResourceError):
    """ffmpeg or ffprobe is missing or exited with a failure."""


class SessionTransitionError(ResourceError):
    """The session store refused a status transition."""


class ChunkingError(ValueError):
    """Markup cannot be split under the engine ceiling."""
