"""CORS header composer: answers preflight requests and stamps CORS headers on responses."""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import Response

from gateway.middleware.pipeline import CorsDecision, Middleware, RequestContext

ALLOW_METHODS = "GET,HEAD,PUT,PATCH,POST,DELETE,OPTIONS"
ALLOW_HEADERS = "Origin, X-Requested-With, Content-Type, Accept, Authorization"


class CorsHeaders(Middleware):
    """Short-circuit ``OPTIONS`` with an empty 204 and add CORS headers in the response phase.

    Headers go on every response the pipeline returns, short-circuits
    included, so preflight answers carry them too. In strict mode they are
    withheld from responses to blocked origins.
    """

    def __init__(self, max_age: int = 86400, strict: bool = False) -> None:
        self._max_age = max_age
        self._strict = strict

    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        if request.method == "OPTIONS":
            return Response(status_code=204)
        return None

    async def process_response(self, response: Response, context: RequestContext) -> Response:
        if self._strict and context.cors_decision is CorsDecision.BLOCKED:
            return response
        response.headers["access-control-allow-origin"] = context.origin or "*"
        response.headers["access-control-allow-credentials"] = "true"
        response.headers["access-control-allow-methods"] = ALLOW_METHODS
        response.headers["access-control-allow-headers"] = ALLOW_HEADERS
        if self._max_age:
            response.headers["access-control-max-age"] = str(self._max_age)
        return response
