"""HTTP exception handlers for FastAPI.

Maps typed Hark exceptions to HTTP responses with the correct status codes.
Framework errors (unknown route, wrong method, invalid body) are answered
with the same envelope so clients only ever parse one error shape.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING

from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from hark.exceptions import (
    ArchiveError,
    AudioConversionError,
    AudioFormatError,
    AudioTooLargeError,
    EngineError,
    FileNotFoundInArchiveError,
    HarkError,
    InvalidRequestError,
    NotReadyError,
    SerializationError,
    TaskNotEnabledError,
    UnauthorizedError,
)
from hark.logging import get_logger
from hark.server.encoder import error_response

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response

logger = get_logger("server.errors")


def _get_request_id(request: Request) -> str | None:
    """Extract request_id from request state, if available."""
    return getattr(request.state, "request_id", None)


async def _handle_invalid_request(request: Request, exc: InvalidRequestError) -> Response:
    logger.warning(
        "invalid_request",
        detail=exc.detail,
        error_type=type(exc).__name__,
        request_id=_get_request_id(request),
    )
    return error_response(400, str(exc), "invalid_request_error", "invalid_request")


async def _handle_unauthorized(request: Request, exc: UnauthorizedError) -> Response:
    logger.warning("unauthorized", detail=exc.detail, request_id=_get_request_id(request))
    return error_response(
        401,
        str(exc),
        "authentication_error",
        "invalid_api_key",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _handle_task_not_enabled(request: Request, exc: TaskNotEnabledError) -> Response:
    logger.warning("task_not_enabled", task=exc.task, request_id=_get_request_id(request))
    return error_response(400, str(exc), "invalid_request_error", "task_not_enabled")


async def _handle_not_ready(request: Request, exc: NotReadyError) -> Response:
    logger.error("not_ready", component=exc.component, request_id=_get_request_id(request))
    return error_response(
        503,
        str(exc),
        "not_ready_error",
        "service_unavailable",
        headers={"Retry-After": "5"},
    )


async def _handle_audio_format_error(request: Request, exc: AudioFormatError) -> Response:
    logger.warning(
        "audio_format_error",
        detail=exc.detail,
        request_id=_get_request_id(request),
    )
    return error_response(400, str(exc), "audio_format_error", "invalid_audio")


async def _handle_audio_too_large(request: Request, exc: AudioTooLargeError) -> Response:
    logger.warning(
        "audio_too_large",
        size_bytes=exc.size_bytes,
        max_bytes=exc.max_bytes,
        request_id=_get_request_id(request),
    )
    return error_response(413, str(exc), "audio_too_large_error", "file_too_large")


async def _handle_audio_conversion(request: Request, exc: AudioConversionError) -> Response:
    logger.warning(
        "audio_conversion_failed",
        filename=exc.filename,
        reason=exc.reason,
        request_id=_get_request_id(request),
    )
    return error_response(422, str(exc), "audio_conversion_error", "conversion_failure")


async def _handle_file_not_found(request: Request, exc: FileNotFoundInArchiveError) -> Response:
    logger.warning("file_not_found", file_id=exc.file_id, request_id=_get_request_id(request))
    return error_response(404, str(exc), "not_found_error", "file_not_found")


async def _handle_archive_error(request: Request, exc: ArchiveError) -> Response:
    logger.error("archive_error", detail=exc.detail, request_id=_get_request_id(request))
    return error_response(500, str(exc), "archive_error", "io_failure")


async def _handle_engine_error(request: Request, exc: EngineError) -> Response:
    logger.error(
        "engine_error",
        stage=exc.stage,
        reason=exc.reason,
        request_id=_get_request_id(request),
    )
    return error_response(500, str(exc), "engine_error", "engine_failure")


async def _handle_serialization_error(request: Request, exc: SerializationError) -> Response:
    logger.error("serialization_error", detail=exc.detail, request_id=_get_request_id(request))
    return error_response(500, str(exc), "serialization_error", "serialization_failure")


async def _handle_hark_error(request: Request, exc: HarkError) -> Response:
    logger.error(
        "unhandled_hark_error",
        error=str(exc),
        error_type=type(exc).__name__,
        request_id=_get_request_id(request),
        exc_info=True,
    )
    return error_response(500, "Internal server error", "internal_error", "internal_error")


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> Response:
    try:
        phrase = HTTPStatus(exc.status_code).phrase
    except ValueError:
        phrase = "error"
    code = phrase.lower().replace(" ", "_").replace("-", "_")
    error_type = "invalid_request_error" if exc.status_code < 500 else "internal_error"
    logger.warning(
        "http_error",
        status_code=exc.status_code,
        path=request.url.path,
        request_id=_get_request_id(request),
    )
    return error_response(
        exc.status_code,
        str(exc.detail),
        error_type,
        code,
        headers=dict(exc.headers) if exc.headers else None,
    )


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> Response:
    errors = exc.errors()
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
        for err in errors
    )
    logger.warning("validation_error", errors=len(errors), request_id=_get_request_id(request))
    return error_response(
        400,
        f"Invalid request: {details}",
        "invalid_request_error",
        "invalid_request",
    )


async def _handle_unexpected_error(request: Request, exc: Exception) -> Response:
    logger.error(
        "unexpected_error",
        error=str(exc),
        error_type=type(exc).__name__,
        request_id=_get_request_id(request),
        exc_info=True,
    )
    return error_response(500, "Internal server error", "internal_error", "internal_error")


def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""
    app.add_exception_handler(InvalidRequestError, _handle_invalid_request)
    app.add_exception_handler(UnauthorizedError, _handle_unauthorized)
    app.add_exception_handler(TaskNotEnabledError, _handle_task_not_enabled)
    app.add_exception_handler(NotReadyError, _handle_not_ready)
    app.add_exception_handler(AudioFormatError, _handle_audio_format_error)
    app.add_exception_handler(AudioTooLargeError, _handle_audio_too_large)
    app.add_exception_handler(AudioConversionError, _handle_audio_conversion)
    app.add_exception_handler(FileNotFoundInArchiveError, _handle_file_not_found)
    app.add_exception_handler(ArchiveError, _handle_archive_error)
    app.add_exception_handler(EngineError, _handle_engine_error)
    app.add_exception_handler(SerializationError, _handle_serialization_error)
    app.add_exception_handler(HarkError, _handle_hark_error)
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)
