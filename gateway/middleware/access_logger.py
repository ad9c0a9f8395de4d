"""Access logger middleware: one structured log line per request."""

from __future__ import annotations

import time

import structlog
from starlette.requests import Request
from starlette.responses import Response

from gateway.middleware.pipeline import Middleware, RequestContext
from gateway.utils.sanitize import strip_control_chars

logger = structlog.get_logger()

_MAX_USER_AGENT_LENGTH = 256


class AccessLogger(Middleware):
    """Bind the request ID to structlog contextvars and log method, path, status and timing.

    Registered first so its response phase runs last and sees the final status,
    including short-circuit responses from later stages.
    """

    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        context.extra["start_time"] = time.monotonic()
        context.extra["method"] = request.method
        context.extra["path"] = request.url.path
        context.extra["client_ip"] = request.client.host if request.client else "unknown"
        context.extra["user_agent"] = strip_control_chars(
            request.headers.get("user-agent", "")[:_MAX_USER_AGENT_LENGTH]
        )

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=context.request_id)
        return None

    async def process_response(self, response: Response, context: RequestContext) -> Response:
        start = context.extra.get("start_time")
        duration_ms = round((time.monotonic() - start) * 1000, 2) if start is not None else None
        response.headers["x-request-id"] = context.request_id
        logger.info(
            "request_completed",
            method=context.extra.get("method", ""),
            path=context.extra.get("path", ""),
            status=response.status_code,
            duration_ms=duration_ms,
            client_ip=context.extra.get("client_ip", "unknown"),
            user_agent=context.extra.get("user_agent", ""),
            origin=strip_control_chars(context.origin) if context.origin else None,
        )
        return response
