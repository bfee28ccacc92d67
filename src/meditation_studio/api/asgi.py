"""ASGI entrypoint for the workflow trigger API."""

from meditation_studio.api.app import create_app
from meditation_studio.containers import build_container

app = create_app(build_container())
