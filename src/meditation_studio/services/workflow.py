"""Workflow orchestration for meditation generation.

Runs ``SCRIPT -> SPEECH -> MIX`` strictly in order for one session. Every
stage outcome is reduced to a ``StageSuccess`` or ``StageFailure``; a failure,
whether raised or reported, and a blown wall-clock budget all route to one
failure handler that marks the session FAILED and stops the run. Nothing is
retried and artifacts written before the failure are left in place.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TypeVar

from meditation_studio.domain.artifacts import ArtifactKey
from meditation_studio.domain.errors import ErrorKind, PipelineError
from meditation_studio.domain.requests import WorkflowTrigger
from meditation_studio.domain.results import (
    FailureReport,
    StageFailure,
    StageResult,
    StageSuccess,
    WorkflowOutcome,
    WorkflowState,
)
from meditation_studio.services.mixing import MixService
from meditation_studio.services.scripts import ScriptService
from meditation_studio.services.sessions import SessionService
from meditation_studio.services.speech import SpeechService

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class WorkflowOrchestrator:
    """Sequences the pipeline stages for one session at a time."""

    script_service: ScriptService
    speech_service: SpeechService
    mix_service: MixService
    session_service: SessionService
    timeout_seconds: float = 900
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(tz=UTC))

    async def run(self, trigger: WorkflowTrigger) -> WorkflowOutcome:
        """Run the whole pipeline and return its terminal outcome."""
        key = ArtifactKey(
            user_id=trigger.user_id,
            day=self.clock().date(),
            session_id=trigger.session_id,
        )
        history: list[WorkflowState] = [WorkflowState.REQUESTED]
        try:
            async with asyncio.timeout(self.timeout_seconds):
                result = await self._pipeline(key, trigger, history)
        except TimeoutError:
            result = StageFailure(
                stage=history[-1],
                kind=ErrorKind.TIMEOUT,
                reason=f"Workflow exceeded {self.timeout_seconds}s",
            )

        if isinstance(result, StageFailure):
            return await self._handle_failure(trigger, result, history)

        history.append(WorkflowState.COMPLETED)
        _logger.info("Workflow completed: session=%s", trigger.session_id)
        return WorkflowOutcome(
            session_id=trigger.session_id,
            state=WorkflowState.COMPLETED,
            history=tuple(history),
            audio_path=result.payload.final_audio_path,
        )

    async def _pipeline(
        self,
        key: ArtifactKey,
        trigger: WorkflowTrigger,
        history: list[WorkflowState],
    ) -> StageResult:
        script = await self._run_stage(
            WorkflowState.SCRIPT,
            history,
            lambda: self.script_service.generate(key, trigger.personalization_input),
        )
        if isinstance(script, StageFailure):
            return script

        speech = await self._run_stage(
            WorkflowState.SPEECH,
            history,
            lambda: self.speech_service.synthesize(key, script.payload.script),
        )
        if isinstance(speech, StageFailure):
            return speech

        return await self._run_stage(
            WorkflowState.MIX,
            history,
            lambda: self.mix_service.mix(key, speech.payload),
        )

    async def _run_stage(
        self,
        stage: WorkflowState,
        history: list[WorkflowState],
        action: Callable[[], Awaitable[T | StageFailure]],
    ) -> StageResult[T]:
        history.append(stage)
        _logger.info("Stage %s started", stage.value)
        try:
            value = await action()
        except PipelineError as exc:
            return StageFailure(stage=stage, kind=exc.kind, reason=str(exc))
        except TimeoutError as exc:
            return StageFailure(
                stage=stage, kind=ErrorKind.TIMEOUT, reason=str(exc) or "timed out"
            )
        except Exception as exc:
            _logger.exception("Stage %s raised unexpectedly", stage.value)
            return StageFailure(
                stage=stage,
                kind=ErrorKind.UNEXPECTED,
                reason=f"{type(exc).__name__}: {exc}",
            )
        if isinstance(value, StageFailure):
            return value
        _logger.info("Stage %s finished", stage.value)
        return StageSuccess(stage=stage, payload=value)

    async def _handle_failure(
        self,
        trigger: WorkflowTrigger,
        failure: StageFailure,
        history: list[WorkflowState],
    ) -> WorkflowOutcome:
        history.append(WorkflowState.FAILED)
        _logger.error(
            "Workflow failed: session=%s stage=%s kind=%s reason=%s",
            trigger.session_id,
            failure.stage.value,
            failure.kind.value,
            failure.reason,
        )
        marked = False
        try:
            marked = await asyncio.to_thread(
                self.session_service.fail, trigger.session_id
            )
        except Exception:
            _logger.exception(
                "Session %s left REQUESTED; failure handler could not mark it "
                "FAILED: input=%s",
                trigger.session_id,
                trigger.as_input(),
            )
        return WorkflowOutcome(
            session_id=trigger.session_id,
            state=WorkflowState.FAILED,
            history=tuple(history),
            failure=FailureReport(
                stage=failure.stage,
                kind=failure.kind,
                reason=failure.reason,
                workflow_input=trigger.as_input(),
                session_marked_failed=marked,
            ),
        )
