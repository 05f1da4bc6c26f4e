"""FastAPI dependencies: gateway context, API key check, and task gating."""

from __future__ import annotations

import hmac
from typing import TYPE_CHECKING

from fastapi import Request  # noqa: TC002

from hark.exceptions import NotReadyError, UnauthorizedError
from hark.logging import bind_request_context

if TYPE_CHECKING:
    from collections.abc import Callable

    from hark._types import Task
    from hark.archive.store import FileArchive
    from hark.server.context import GatewayContext


def get_context(request: Request) -> GatewayContext:
    """Return the GatewayContext from app state.

    Raises:
        NotReadyError: If the context was not set up yet.
    """
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise NotReadyError("gateway context")
    return context  # type: ignore[no-any-return]


def get_archive(request: Request) -> FileArchive:
    return get_context(request).archive


def verify_api_key(request: Request) -> None:
    """Check ``Authorization: Bearer <key>`` when the server has a key.

    An absent or empty header counts as no authentication attempt and is
    let through. A header that is present must carry the right token.

    Raises:
        UnauthorizedError: Missing token or token mismatch.
    """
    api_key = get_context(request).api_key
    if not api_key:
        return

    header = request.headers.get("authorization", "")
    if not header.strip():
        return

    parts = header.split(" ", 1)
    token = parts[1].strip() if len(parts) == 2 else ""
    if not token:
        raise UnauthorizedError("Missing API key in the Authorization header.")
    if not hmac.compare_digest(token.encode("utf-8"), api_key.encode("utf-8")):
        raise UnauthorizedError("Invalid API key.")


def require_ready(request: Request) -> None:
    """Reject the request until an operating mode has been committed.

    Raises:
        NotReadyError: If the server has no operating mode yet.
    """
    if get_context(request).gate.mode is None:
        raise NotReadyError("operating mode")


def require_task(task: Task) -> Callable[[Request], None]:
    """Build a dependency that rejects the request unless ``task`` is enabled.

    Runs before the body is read, so a gated request never persists a file
    or reaches the engine.
    """

    def _check(request: Request) -> None:
        bind_request_context(task=task.value)
        get_context(request).gate.check(task)

    return _check
