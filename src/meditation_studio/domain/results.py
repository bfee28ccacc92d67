"""Stage result types consumed by the workflow orchestrator."""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Literal, TypeVar
from uuid import UUID

from meditation_studio.domain.errors import ErrorKind

T = TypeVar("T")


class WorkflowState(str, Enum):
    """States of the generation workflow."""

    REQUESTED = "REQUESTED"
    SCRIPT = "SCRIPT"
    SPEECH = "SPEECH"
    MIX = "MIX"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class StageSuccess(Generic[T]):
    """A stage finished and produced its payload."""

    stage: WorkflowState
    payload: T
    ok: Literal[True] = True


@dataclass(frozen=True)
class StageFailure:
    """A stage failed, by raising or by reporting."""

    stage: WorkflowState
    kind: ErrorKind
    reason: str
    ok: Literal[False] = False


StageResult = StageSuccess[T] | StageFailure


@dataclass(frozen=True)
class FailureReport:
    """What the failure handler captured for a failed run."""

    stage: WorkflowState
    kind: ErrorKind
    reason: str
    workflow_input: dict[str, object]
    session_marked_failed: bool


@dataclass(frozen=True)
class WorkflowOutcome:
    """Terminal result of one workflow run."""

    session_id: UUID
    state: WorkflowState
    history: tuple[WorkflowState, ...]
    audio_path: str | None = None
    failure: FailureReport | None = None

    @property
    def succeeded(self) -> bool:
        """Return whether the run ended COMPLETED."""
        return self.state is WorkflowState.COMPLETED

    def to_dict(self) -> dict[str, object]:
        """Serialize the outcome for logs and command output."""
        payload: dict[str, object] = {
            "sessionID": str(self.session_id),
            "state": self.state.value,
            "history": [state.value for state in self.history],
            "audioPath": self.audio_path,
        }
        if self.failure is not None:
            payload["failure"] = {
                "stage": self.failure.stage.value,
                "kind": self.failure.kind.value,
                "reason": self.failure.reason,
                "input": self.failure.workflow_input,
                "sessionMarkedFailed": self.failure.session_marked_failed,
            }
        return payload
