"""POST /v1/audio/speech (and its CORS preflight)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from hark._types import Task
from hark.exceptions import TaskNotEnabledError
from hark.logging import get_logger
from hark.server.context import GatewayContext  # noqa: TC001
from hark.server.dependencies import get_context, require_ready, verify_api_key
from hark.server.encoder import json_response, preflight_response
from hark.server.models.speech import SpeechRequest  # noqa: TC001

router = APIRouter(tags=["Audio"])

logger = get_logger("server.routes.speech")

SPEECH_OUTPUT_FILENAME = "output.wav"


@router.options("/v1/audio/speech", include_in_schema=False)
async def speech_preflight() -> Response:
    return preflight_response()


@router.post(
    "/v1/audio/speech",
    dependencies=[Depends(verify_api_key), Depends(require_ready)],
)
async def create_speech(
    body: SpeechRequest,
    context: GatewayContext = Depends(get_context),  # noqa: B008
) -> Response:
    """Synthesize audio from text.

    The generated audio is stored in the archive; the response is its file
    object, which can be listed and deleted like any upload.
    """
    if Task.SPEECH not in context.invoker.capabilities:
        raise TaskNotEnabledError(
            Task.SPEECH.value,
            "The loaded engine does not support speech synthesis.",
        )

    logger.info(
        "speech_request",
        model=body.model,
        voice=body.voice,
        text_length=len(body.input),
    )
    audio = await context.invoker.synthesize(body.input, body.engine_options())
    uploaded = await context.archive.create(audio, SPEECH_OUTPUT_FILENAME)
    logger.info("speech_archived", file_id=uploaded.id, bytes=uploaded.bytes)
    return json_response(uploaded)
