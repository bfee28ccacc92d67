"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, Depends, FastAPI, Request, status

from meditation_studio.api.auth import require_workflow_token
from meditation_studio.app_logging import configure_logging
from meditation_studio.containers import AppContainer
from meditation_studio.domain.requests import WorkflowTrigger


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app exposing the workflow trigger."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    async def run_workflow(
        state_container: AppContainer, trigger: WorkflowTrigger
    ) -> None:
        outcome = await state_container.orchestrator.run(trigger)
        logger.info(
            "Workflow finished: session=%s state=%s",
            outcome.session_id,
            outcome.state.value,
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post(
        "/workflow/executions",
        status_code=status.HTTP_202_ACCEPTED,
        dependencies=[Depends(require_workflow_token)],
    )
    async def start_workflow(
        trigger: WorkflowTrigger,
        request: Request,
        background_tasks: BackgroundTasks,
    ) -> dict[str, str]:
        """Accept a trigger and run the session's pipeline in the background."""
        state_container: AppContainer = request.app.state.container
        background_tasks.add_task(run_workflow, state_container, trigger)
        logger.info("Workflow accepted: session=%s", trigger.session_id)
        return {"status": "accepted", "sessionID": str(trigger.session_id)}

    return app
