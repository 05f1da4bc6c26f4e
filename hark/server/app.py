"""FastAPI application factory for the Hark gateway."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from fastapi import FastAPI

import hark
from hark.server.error_handlers import register_error_handlers
from hark.server.middleware import RequestLoggingMiddleware
from hark.server.routes import files, health, speech, transcriptions, translations

if TYPE_CHECKING:
    from hark.server.context import GatewayContext


def create_app(context: GatewayContext | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        context: Gateway context (engine invoker, archive, task gate, ...).
            None only for tests of the not-ready path; every route that
            needs it then answers 503.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="Hark Gateway",
        version=hark.__version__,
        description="Speech-to-text gateway with an OpenAI-compatible audio API",
    )

    app.state.context = context
    app.state.started_at = int(time.time())

    app.add_middleware(RequestLoggingMiddleware)

    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(transcriptions.router)
    app.include_router(translations.router)
    app.include_router(speech.router)
    app.include_router(files.router)
    app.include_router(files.preflight_router)

    return app
