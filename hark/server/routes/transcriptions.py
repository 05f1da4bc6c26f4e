"""POST /v1/audio/transcriptions (and its CORS preflight)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from hark._types import Task
from hark.server.context import GatewayContext  # noqa: TC001
from hark.server.dependencies import get_context, require_task, verify_api_key
from hark.server.encoder import preflight_response
from hark.server.routes._common import handle_audio_request

router = APIRouter(tags=["Audio"])


@router.options("/v1/audio/transcriptions", include_in_schema=False)
async def transcription_preflight() -> Response:
    return preflight_response()


@router.post(
    "/v1/audio/transcriptions",
    dependencies=[Depends(verify_api_key), Depends(require_task(Task.TRANSCRIBE))],
)
async def create_transcription(
    request: Request,
    context: GatewayContext = Depends(get_context),  # noqa: B008
) -> Response:
    """Transcribe an audio file in its spoken language.

    Compatible with OpenAI Audio API POST /v1/audio/transcriptions. The body is
    multipart/form-data and is streamed field by field.
    """
    return await handle_audio_request(request, context, Task.TRANSCRIBE)
