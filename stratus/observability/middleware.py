"""Request context middleware for observability."""

import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from structlog.contextvars import bind_contextvars, clear_contextvars

from stratus.observability.logging import get_logger
from stratus.protocol.headers import SESSION_ID_HEADER

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds request_id and session_id to structlog contextvars.

    The request ID is taken from X-Request-ID when the caller supplies one and
    echoed back on the response.
    """

    async def dispatch(  # type: ignore[override]
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        clear_contextvars()

        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        bind_contextvars(
            request_id=request_id,
            session_id=request.headers.get(SESSION_ID_HEADER),
        )

        logger.debug("request_started", method=request.method, path=request.url.path)

        response = await call_next(request)  # type: ignore[misc]

        logger.debug(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
        )

        response.headers["X-Request-ID"] = request_id
        return response  # type: ignore[no-any-return]
