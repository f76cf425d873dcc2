"""ASGI entrypoint for the photo lifecycle API."""

from photo_lifecycle.api.app import create_app
from photo_lifecycle.containers import build_container

app = create_app(build_container())
