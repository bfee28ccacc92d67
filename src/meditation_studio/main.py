"""Command-line entry that runs one workflow from a trigger event on stdin."""

import asyncio
import json
import sys

from pydantic import ValidationError

from meditation_studio.app_logging import configure_logging
from meditation_studio.containers import AppContainer, build_container
from meditation_studio.domain.requests import WorkflowTrigger, parse_trigger_event
from meditation_studio.domain.results import WorkflowOutcome


async def run_event(
    container: AppContainer, trigger: WorkflowTrigger
) -> WorkflowOutcome:
    """Run the workflow and release container resources afterwards."""
    try:
        return await container.orchestrator.run(trigger)
    finally:
        await container.close_resources()


def main(raw_event: str | None = None, container: AppContainer | None = None) -> int:
    """Validate the trigger event, run the pipeline and print the outcome."""
    event = sys.stdin.read() if raw_event is None else raw_event
    try:
        trigger = parse_trigger_event(event)
    except ValidationError as exc:
        detail = exc.errors(include_url=False, include_context=False)
        payload = {"error": "invalid trigger event", "detail": detail}
        print(json.dumps(payload, default=str))
        return 2
    resolved = container or build_container()
    configure_logging(resolved.settings.log_level)
    outcome = asyncio.run(run_event(resolved, trigger))
    print(json.dumps(outcome.to_dict()))
    return 0 if outcome.succeeded else 1


if __name__ == "__main__":
    raise SystemExit(main())
