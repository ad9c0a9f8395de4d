"""Request sanitizer middleware: strips markup from every string in the parsed body."""

from __future__ import annotations

import structlog
from starlette.requests import Request
from starlette.responses import Response

from gateway.errors import MalformedInputError, SanitizationFailure
from gateway.middleware.pipeline import Middleware, RequestContext
from gateway.utils.sanitize import DEFAULT_MAX_DEPTH, sanitize

logger = structlog.get_logger()


class RequestSanitizer(Middleware):
    """Replace ``context.body`` with its sanitized copy."""

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self._max_depth = max_depth

    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        if not context.body_parsed:
            return None
        try:
            context.body = sanitize(context.body, max_depth=self._max_depth)
        except MalformedInputError:
            raise
        except Exception as exc:
            logger.exception("request_sanitize_failed")
            raise SanitizationFailure() from exc
        return None
