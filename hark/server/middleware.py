"""Request id assignment and structured request/response logging."""

from __future__ import annotations

import time
import uuid
from typing import TYPE_CHECKING

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from hark.logging import bind_request_context, clear_request_context, get_logger

if TYPE_CHECKING:
    from fastapi import Request, Response

logger = get_logger("server.http")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assign a request_id to each HTTP request and log its lifecycle."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        clear_request_context()
        bind_request_context(request_id=request_id)

        logger.info(
            "request_received",
            method=request.method,
            path=request.url.path,
            http_version=request.scope.get("http_version"),
            content_length=request.headers.get("content-length"),
            content_type=request.headers.get("content-type"),
        )
        started = time.monotonic()
        response = await call_next(request)
        elapsed_ms = round((time.monotonic() - started) * 1000, 1)

        logger.info(
            "response_sent",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            is_success=response.status_code < 400,
            elapsed_ms=elapsed_ms,
        )
        response.headers["X-Request-ID"] = request_id
        clear_request_context()
        return response
