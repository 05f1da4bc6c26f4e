"""Shared logic between audio routes (transcriptions and translations)."""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from typing import TYPE_CHECKING

from hark.exceptions import FieldParseError
from hark.logging import get_logger
from hark.preprocessing.audio_io import load_waveform
from hark.preprocessing.converter import normalize_upload
from hark.server.decoder import AudioRequestDecoder
from hark.server.formatters import format_response
from hark.server.multipart import MultipartFieldReader, extract_boundary

if TYPE_CHECKING:
    from fastapi import Request, Response

    from hark._types import Task
    from hark.server.context import GatewayContext

logger = get_logger("server.routes")


async def handle_audio_request(
    request: Request,
    context: GatewayContext,
    task: Task,
) -> Response:
    """Process an audio request (transcription or translation).

    Streams and decodes the multipart body (persisting the upload),
    normalizes the audio, runs the engine, and formats the response.
    Auth and the task gate have already run as route dependencies.

    Args:
        request: Incoming request; its body is read here.
        context: Gateway context owned by the app.
        task: Task selected by the route.

    Returns:
        Response formatted according to ``response_format``.
    """
    boundary = extract_boundary(request.headers.get("content-type"))
    reader = MultipartFieldReader(
        request.stream(),
        boundary,
        max_file_size=context.max_file_size_bytes,
    )
    decoder = AudioRequestDecoder(context.archive, context.allowed_extensions)
    async with aclosing(reader.fields()) as fields:
        audio_request = await decoder.decode(fields, task)

    uploaded = audio_request.file
    assert uploaded is not None  # Guaranteed by decode()
    logger.info(
        "request_validated",
        task=task.value,
        file_id=uploaded.id,
        model=audio_request.model,
        language=audio_request.language,
        response_format=audio_request.response_format.value,
        use_new_context=audio_request.use_new_context,
    )

    audio_request.file = await normalize_upload(
        uploaded, context.archive, context.converter, context.sample_rate
    )
    audio_path = context.archive.path_of(audio_request.file.id, audio_request.file.filename)
    waveform = await asyncio.to_thread(load_waveform, audio_path, context.sample_rate)
    duration = len(waveform) / context.sample_rate
    logger.info(
        "audio_normalized",
        file_id=audio_request.file.id,
        filename=audio_request.file.filename,
        duration_s=round(duration, 3),
    )
    duration_ms = int(duration * 1000)
    if audio_request.offset_time and audio_request.offset_time >= duration_ms:
        raise FieldParseError(
            "offset_time",
            str(audio_request.offset_time),
            f"within the audio ({duration_ms} ms)",
        )

    text = await context.invoker.transcribe(
        waveform,
        audio_request.engine_options(),
        use_new_context=audio_request.use_new_context,
    )
    logger.info("request_completed", task=task.value, text_length=len(text))

    return format_response(text, audio_request, duration)
