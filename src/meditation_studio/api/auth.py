"""Shared-secret auth for the workflow trigger API."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

from fastapi import Depends, Header, HTTPException, Request, status

if TYPE_CHECKING:
    from meditation_studio.containers import AppContainer


def _get_workflow_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.workflow_token


async def require_workflow_token(
    x_workflow_token: str | None = Header(default=None),
    workflow_token: str = Depends(_get_workflow_token),
) -> None:
    """Ensure requests include the configured workflow token."""
    if not x_workflow_token or not secrets.compare_digest(
        x_workflow_token, workflow_token
    ):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
