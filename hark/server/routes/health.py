"""Health check, echo, server info and models list endpoints."""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends, Request, Response

import hark
from hark.server.context import GatewayContext  # noqa: TC001
from hark.server.dependencies import get_context, verify_api_key
from hark.server.encoder import json_response, text_response
from hark.server.models.responses import HealthResponse, ModelCard, ModelList

router = APIRouter()


@router.get("/health")
async def health(request: Request) -> Response:
    """Runtime health check.

    ``"ok"`` once the gateway context is installed and an operating mode is
    committed, ``"not_ready"`` before that.
    """
    context = getattr(request.app.state, "context", None)
    mode = context.gate.mode if context is not None else None
    return json_response(
        HealthResponse(
            status="ok" if mode is not None else "not_ready",
            version=hark.__version__,
            mode=mode.value if mode is not None else None,
        )
    )


@router.get("/echo")
async def echo() -> Response:
    """Liveness probe that answers with a fixed string."""
    return text_response("echo test")


@router.get("/v1/info", dependencies=[Depends(verify_api_key)])
async def server_info(context: GatewayContext = Depends(get_context)) -> Response:  # noqa: B008
    """Return the server info snapshot computed at startup."""
    return json_response(context.server_info.to_payload())


@router.get("/v1/models", dependencies=[Depends(verify_api_key)])
async def list_models(
    request: Request,
    context: GatewayContext = Depends(get_context),  # noqa: B008
) -> Response:
    """List the models published for each enabled task.

    Returns OpenAI-compatible format with ``object: "list"`` and ``data`` array.
    """
    created = getattr(request.app.state, "started_at", None) or int(time.time())
    info = context.server_info
    data = [
        ModelCard(id=model.name, created=created, task=model.type)
        for model in (info.transcribe_model, info.translate_model)
        if model is not None
    ]
    return json_response(ModelList(data=data))
