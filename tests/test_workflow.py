"""Tests for workflow orchestration."""

import asyncio
import logging
import time
from uuid import uuid4

import pytest

from meditation_studio.domain.errors import (
    ErrorKind,
    MediaToolError,
    UpstreamEngineError,
)
from meditation_studio.domain.requests import WorkflowTrigger
from meditation_studio.domain.results import StageFailure, WorkflowState
from meditation_studio.domain.sessions import SessionStatus
from tests.conftest import (
    FakeMediaToolkit,
    FakeScriptClient,
    FakeSpeechClient,
    InMemorySessionRepository,
    PipelineFakes,
    SlowArtifactStore,
    build_orchestrator,
)

_LONG_SCRIPT = "<speak>" + "".join(
    f'Part {index}: notice the breath moving through the body.<break time="2s"/>'
    for index in range(120)
) + "</speak>"


def _trigger(fakes: PipelineFakes, personalization=None) -> WorkflowTrigger:
    session_id = fakes.sessions.add(user_id="user-1")
    return WorkflowTrigger(
        user_id="user-1",
        session_id=session_id,
        personalization_input=personalization,
    )


def test_happy_path_completes_session(fakes: PipelineFakes) -> None:
    trigger = _trigger(fakes, {"mood": "restless"})

    outcome = asyncio.run(build_orchestrator(fakes).run(trigger))

    prefix = f"user-1/2025-03-14/{trigger.session_id}"
    assert outcome.succeeded
    assert outcome.history == (
        WorkflowState.REQUESTED,
        WorkflowState.SCRIPT,
        WorkflowState.SPEECH,
        WorkflowState.MIX,
        WorkflowState.COMPLETED,
    )
    assert outcome.audio_path == f"{prefix}.mp3"
    assert ("meditation-scripts", f"{prefix}.json") in fakes.store.objects
    assert ("meditation-speech", f"{prefix}.mp3") in fakes.store.objects
    assert ("meditation-audio", f"{prefix}.mp3") in fakes.store.objects
    record = fakes.sessions.sessions[trigger.session_id]
    assert record.status is SessionStatus.COMPLETED
    assert record.audio_path == f"{prefix}.mp3"
    assert '"mood": "restless"' in fakes.script_client.prompts[0]


@pytest.mark.parametrize(
    ("stage", "kind"),
    [
        (WorkflowState.SCRIPT, ErrorKind.UPSTREAM_ENGINE),
        (WorkflowState.SPEECH, ErrorKind.UPSTREAM_ENGINE),
        (WorkflowState.MIX, ErrorKind.RESOURCE),
    ],
)
def test_stage_error_marks_session_failed(
    fakes: PipelineFakes, stage: WorkflowState, kind: ErrorKind
) -> None:
    if stage is WorkflowState.SCRIPT:
        fakes.script_client.error = UpstreamEngineError("engine unavailable")
    elif stage is WorkflowState.SPEECH:
        fakes.speech_client.error = UpstreamEngineError("engine unavailable")
    else:
        fakes.toolkit.mix_error = MediaToolError("ffmpeg exited with code 1")
    trigger = _trigger(fakes)

    outcome = asyncio.run(build_orchestrator(fakes).run(trigger))

    assert outcome.state is WorkflowState.FAILED
    assert outcome.history[-2:] == (stage, WorkflowState.FAILED)
    assert outcome.failure is not None
    assert outcome.failure.stage is stage
    assert outcome.failure.kind is kind
    assert outcome.failure.session_marked_failed is True
    assert outcome.failure.workflow_input["sessionID"] == str(trigger.session_id)
    assert fakes.sessions.sessions[trigger.session_id].status is SessionStatus.FAILED
    assert ("meditation-audio", f"user-1/2025-03-14/{trigger.session_id}.mp3") not in (
        fakes.store.objects
    )


def test_later_stages_do_not_run_after_failure(fakes: PipelineFakes) -> None:
    fakes.script_client.error = UpstreamEngineError("engine unavailable")

    asyncio.run(build_orchestrator(fakes).run(_trigger(fakes)))

    assert fakes.speech_client.calls == []
    assert fakes.toolkit.mixes == []


def test_failure_on_second_chunk_stops_synthesis(fakes: PipelineFakes) -> None:
    fakes.script_client.text = _LONG_SCRIPT
    fakes.speech_client.empty_on_call = 2
    trigger = _trigger(fakes)

    outcome = asyncio.run(build_orchestrator(fakes).run(trigger))

    assert outcome.failure is not None
    assert outcome.failure.stage is WorkflowState.SPEECH
    assert outcome.failure.kind is ErrorKind.UPSTREAM_ENGINE
    assert "chunk 2" in outcome.failure.reason
    assert len(fakes.speech_client.calls) == 2
    assert ("meditation-speech", f"user-1/2025-03-14/{trigger.session_id}.mp3") not in (
        fakes.store.objects
    )
    assert fakes.sessions.sessions[trigger.session_id].status is SessionStatus.FAILED


def test_reported_failure_routes_to_handler(fakes: PipelineFakes) -> None:
    orchestrator = build_orchestrator(fakes)

    async def reported(key, script):  # type: ignore[no-untyped-def]
        return StageFailure(
            stage=WorkflowState.SPEECH,
            kind=ErrorKind.UPSTREAM_ENGINE,
            reason="engine reported failure",
        )

    orchestrator.speech_service.synthesize = reported  # type: ignore[method-assign]
    trigger = _trigger(fakes)

    outcome = asyncio.run(orchestrator.run(trigger))

    assert outcome.failure is not None
    assert outcome.failure.reason == "engine reported failure"
    assert fakes.toolkit.mixes == []
    assert fakes.sessions.sessions[trigger.session_id].status is SessionStatus.FAILED


def test_unexpected_exception_is_reported(fakes: PipelineFakes) -> None:
    fakes.script_client.error = RuntimeError("boom")
    trigger = _trigger(fakes)

    outcome = asyncio.run(build_orchestrator(fakes).run(trigger))

    assert outcome.failure is not None
    assert outcome.failure.kind is ErrorKind.UNEXPECTED
    assert "boom" in outcome.failure.reason


def test_timeout_fails_the_running_stage(fakes: PipelineFakes) -> None:
    orchestrator = build_orchestrator(fakes, timeout_seconds=0.05)

    async def slow_probe(path):  # type: ignore[no-untyped-def]
        await asyncio.sleep(5)
        return 10.0

    fakes.toolkit.probe_duration = slow_probe  # type: ignore[method-assign]
    trigger = _trigger(fakes)

    outcome = asyncio.run(orchestrator.run(trigger))

    assert outcome.failure is not None
    assert outcome.failure.kind is ErrorKind.TIMEOUT
    assert outcome.failure.stage is WorkflowState.MIX
    assert fakes.sessions.sessions[trigger.session_id].status is SessionStatus.FAILED


def test_completed_session_is_not_overwritten_by_failure(
    fakes: PipelineFakes,
) -> None:
    orchestrator = build_orchestrator(fakes)
    trigger = _trigger(fakes)
    asyncio.run(orchestrator.run(trigger))

    fakes.script_client.error = UpstreamEngineError("engine unavailable")
    outcome = asyncio.run(orchestrator.run(trigger))

    assert outcome.failure is not None
    assert outcome.failure.session_marked_failed is False
    assert fakes.sessions.sessions[trigger.session_id].status is SessionStatus.COMPLETED


def test_failure_handler_errors_are_logged_with_input(
    fakes: PipelineFakes, caplog, monkeypatch
) -> None:
    monkeypatch.setattr(logging.getLogger("meditation_studio"), "propagate", True)
    orchestrator = build_orchestrator(fakes)
    fakes.script_client.error = UpstreamEngineError("engine unavailable")

    def broken_fail(session_id):  # type: ignore[no-untyped-def]
        raise ConnectionError("session store unreachable")

    orchestrator.session_service.fail = broken_fail  # type: ignore[method-assign]

    trigger = _trigger(fakes, "sleep")

    with caplog.at_level(logging.ERROR, logger="meditation_studio"):
        outcome = asyncio.run(orchestrator.run(trigger))

    assert outcome.state is WorkflowState.FAILED
    assert outcome.failure is not None
    assert outcome.failure.session_marked_failed is False
    assert fakes.sessions.sessions[trigger.session_id].status is SessionStatus.REQUESTED
    messages = [
        record.getMessage()
        for record in caplog.records
        if record.levelno >= logging.ERROR and record.exc_info
    ]
    assert any(
        str(trigger.session_id) in message
        and "left REQUESTED" in message
        and "'personalizationInput': 'sleep'" in message
        for message in messages
    )


def test_blocking_storage_does_not_outlive_the_budget() -> None:
    fakes = PipelineFakes(
        sessions=InMemorySessionRepository(),
        store=SlowArtifactStore(delay=1.0),
        script_client=FakeScriptClient(),
        speech_client=FakeSpeechClient(),
        toolkit=FakeMediaToolkit(),
    )
    orchestrator = build_orchestrator(fakes, timeout_seconds=0.2)
    trigger = _trigger(fakes)

    async def timed_run():  # type: ignore[no-untyped-def]
        started = time.monotonic()
        outcome = await orchestrator.run(trigger)
        return outcome, time.monotonic() - started

    outcome, elapsed = asyncio.run(timed_run())

    assert elapsed < 0.8
    assert outcome.state is WorkflowState.FAILED
    assert outcome.failure is not None
    assert outcome.failure.stage is WorkflowState.SCRIPT
    assert outcome.failure.kind is ErrorKind.TIMEOUT
    assert fakes.sessions.sessions[trigger.session_id].status is SessionStatus.FAILED


def test_outcome_serializes_failure(fakes: PipelineFakes) -> None:
    fakes.script_client.error = UpstreamEngineError("engine unavailable")
    trigger = _trigger(fakes, "sleep")

    payload = asyncio.run(build_orchestrator(fakes).run(trigger)).to_dict()

    assert payload["state"] == "FAILED"
    assert payload["audioPath"] is None
    assert payload["failure"]["stage"] == "SCRIPT"
    assert payload["failure"]["input"] == {
        "userID": "user-1",
        "sessionID": str(trigger.session_id),
        "personalizationInput": "sleep",
    }


def test_unknown_session_cannot_complete(fakes: PipelineFakes) -> None:
    trigger = WorkflowTrigger(user_id="user-1", session_id=uuid4())

    outcome = asyncio.run(build_orchestrator(fakes).run(trigger))

    assert outcome.failure is not None
    assert outcome.failure.stage is WorkflowState.MIX
    assert outcome.failure.kind is ErrorKind.RESOURCE
    assert outcome.failure.session_marked_failed is False
