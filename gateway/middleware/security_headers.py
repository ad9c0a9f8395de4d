"""Fixed response hardening headers."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from starlette.requests import Request
from starlette.responses import Response

from gateway.middleware.pipeline import Middleware, RequestContext

# "0" switches the legacy browser XSS auditor off
DEFAULT_HEADERS: Mapping[str, str] = {
    "x-xss-protection": "0",
    "x-content-type-options": "nosniff",
}

STACK_HEADERS = ("server", "x-powered-by")


class SecurityHeaders(Middleware):
    """Set hardening headers on every response and drop ones that fingerprint the stack."""

    def __init__(self, headers: Mapping[str, str] | None = None, strip: Iterable[str] = STACK_HEADERS) -> None:
        self._headers = dict(DEFAULT_HEADERS if headers is None else headers)
        self._strip = tuple(name.lower() for name in strip)

    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        return None

    async def process_response(self, response: Response, context: RequestContext) -> Response:
        for name in self._strip:
            if name in response.headers:
                del response.headers[name]
        response.headers.update(self._headers)
        return response
