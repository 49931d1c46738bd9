"""ASGI entrypoint for the FoodData Central gateway.

Serve with ``uvicorn --factory fdc_gateway.api.asgi:build_app``. Settings
are read from the environment when the factory runs, not at import time.
"""

from fastapi import FastAPI

from fdc_gateway.api.app import create_app
from fdc_gateway.config import Settings
from fdc_gateway.containers import build_container


def build_app(settings: Settings | None = None) -> FastAPI:
    """Build the gateway app with a freshly wired container."""
    return create_app(build_container(settings))
