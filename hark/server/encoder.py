"""Response encoding shared by every route and error handler.

Successful payloads and errors go out as JSON with permissive CORS
headers; the only bodies that are not JSON are ``response_format=text``
results and the empty CORS preflight answer.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import Response
from pydantic import BaseModel

from hark.exceptions import SerializationError

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "*",
    "Access-Control-Allow-Headers": "*",
}

JSON_MEDIA_TYPE = "application/json"


def encode_json(payload: Any) -> bytes:
    """Serialize a payload (pydantic models included) to UTF-8 JSON.

    Raises:
        SerializationError: The payload is not JSON-serializable.
    """
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    try:
        return json.dumps(payload, ensure_ascii=False, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise SerializationError(str(exc)) from exc


def json_response(
    payload: Any,
    status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> Response:
    return Response(
        content=encode_json(payload),
        status_code=status_code,
        media_type=JSON_MEDIA_TYPE,
        headers={**CORS_HEADERS, **(headers or {})},
    )


def text_response(text: str) -> Response:
    return Response(content=text, media_type="text/plain", headers=CORS_HEADERS)


def error_response(
    status_code: int,
    message: str,
    error_type: str,
    code: str,
    headers: dict[str, str] | None = None,
) -> Response:
    """Create an error response in the OpenAI-compatible format."""
    return json_response(
        {"error": {"message": message, "type": error_type, "code": code}},
        status_code=status_code,
        headers=headers,
    )


def preflight_response() -> Response:
    """Empty answer to a CORS preflight request."""
    return Response(content=b"", status_code=200, headers=CORS_HEADERS)
