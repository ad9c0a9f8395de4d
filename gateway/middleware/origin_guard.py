"""Origin whitelist guard middleware."""

from __future__ import annotations

import structlog
from starlette.requests import Request
from starlette.responses import Response

from gateway.config.whitelist import Whitelist
from gateway.errors import CorsViolation
from gateway.middleware.pipeline import CorsDecision, Middleware, RequestContext
from gateway.utils.sanitize import strip_control_chars

logger = structlog.get_logger()

_MAX_LOGGED_ORIGIN_LENGTH = 256


def decide(origin: str | None, whitelist: Whitelist) -> CorsDecision:
    """Allow requests without an Origin header or with an exactly whitelisted one."""
    if not origin:
        return CorsDecision.ALLOWED
    if origin in whitelist:
        return CorsDecision.ALLOWED
    logger.warning(
        "cors_origin_blocked",
        origin=strip_control_chars(origin[:_MAX_LOGGED_ORIGIN_LENGTH]),
    )
    return CorsDecision.BLOCKED


class OriginGuard(Middleware):
    """Record the CORS decision on the context and reject blocked origins with 403.

    Browsers only send ``Origin`` on cross-site requests, so requests without
    it (curl, mobile apps, server-to-server) are always allowed.

    When ``strict`` is False, a blocked preflight is let through so the CORS
    stage can answer it with 204, as browsers are still refused on the real
    request that follows.
    """

    def __init__(self, whitelist: Whitelist, strict: bool = False) -> None:
        self._whitelist = whitelist
        self._strict = strict

    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        origin = request.headers.get("origin")
        context.origin = origin or None
        context.cors_decision = decide(context.origin, self._whitelist)

        if context.cors_decision is CorsDecision.ALLOWED:
            return None
        if request.method == "OPTIONS" and not self._strict:
            return None
        raise CorsViolation(origin)
