"""Engine text -> API response, per ``response_format``."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from hark._types import ResponseFormat
from hark.server.encoder import json_response, text_response

if TYPE_CHECKING:
    from fastapi import Response

    from hark.server.decoder import AudioTaskRequest


def format_response(text: str, request: AudioTaskRequest, duration: float) -> Response:
    """Format decoded engine output for the requested response format.

    Args:
        text: UTF-8 text produced by the engine.
        request: The decoded request (task, language, format).
        duration: Length of the audio fed to the engine, in seconds.
    """
    match request.response_format:
        case ResponseFormat.TEXT:
            return text_response(text)
        case ResponseFormat.VERBOSE_JSON:
            return json_response(_to_verbose_json(text, request, duration))
        case _:
            return json_response({"text": text})


def _to_verbose_json(text: str, request: AudioTaskRequest, duration: float) -> dict[str, Any]:
    return {
        "task": request.task.value,
        "language": request.language or "auto",
        "duration": round(duration, 3),
        "text": text,
        "file_id": request.file.id if request.file is not None else None,
    }
