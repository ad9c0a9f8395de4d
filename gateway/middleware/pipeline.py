"""Ordered request pipeline.

Each stage sees the request before the router and the response after it.
A stage rejects a request by returning a Response or by raising a
:class:`~gateway.errors.GatewayError`; either way the remaining stages are
skipped and the rejection still travels back through every response phase.
"""

from __future__ import annotations

import abc
import enum
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

import structlog
from starlette.requests import ClientDisconnect, Request
from starlette.responses import JSONResponse, Response

from gateway.errors import GatewayError

logger = structlog.get_logger()

# nginx "client closed request"; nobody reads this response
CLIENT_CLOSED_STATUS = 499


class CorsDecision(str, enum.Enum):
    """Outcome of matching a request origin against the whitelist."""

    ALLOWED = "allowed"
    BLOCKED = "blocked"


@dataclass
class RequestContext:
    """Per-request state shared by the stages and, via ``request.state``, the handlers."""

    request_id: str = field(default_factory=lambda: uuid4().hex[:8])
    origin: str | None = None
    cors_decision: CorsDecision | None = None
    body: Any = None
    body_parsed: bool = False
    # Bytes read off the wire and the decoder used ("json" or "form")
    raw_body: bytes | None = None
    body_format: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


class Middleware(abc.ABC):
    """One pipeline stage."""

    @property
    def name(self) -> str:
        return type(self).__name__

    @abc.abstractmethod
    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        """Return None to continue, or a Response to stop here.

        Raising a GatewayError stops here with that error's JSON response.
        """

    async def process_response(self, response: Response, context: RequestContext) -> Response:
        return response


def _error_response(stage: Middleware, exc: Exception) -> Response:
    if isinstance(exc, GatewayError):
        logger.info("middleware_rejected", middleware=stage.name, status=exc.status_code, reason=exc.message)
        return exc.to_response()
    if isinstance(exc, ClientDisconnect):
        logger.info("client_disconnected", middleware=stage.name)
        return Response(status_code=CLIENT_CLOSED_STATUS)
    logger.error("middleware_request_error", middleware=stage.name, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error."})


class MiddlewarePipeline:
    """Stages run in registration order on the way in and in reverse on the way out."""

    def __init__(self) -> None:
        self._stages: list[Middleware] = []
        self._disabled: set[str] = set()

    def add(self, middleware: Middleware, enabled: bool = True) -> None:
        self._stages.append(middleware)
        if not enabled:
            self._disabled.add(middleware.name)
        logger.info("middleware_registered", name=middleware.name, position=len(self._stages) - 1, enabled=enabled)

    def set_enabled(self, name: str, enabled: bool) -> None:
        """Toggle a registered stage. Unknown names are ignored."""
        if name not in self.names:
            return
        if enabled:
            self._disabled.discard(name)
        else:
            self._disabled.add(name)

    def is_enabled(self, name: str) -> bool:
        return name in self.names and name not in self._disabled

    @property
    def names(self) -> list[str]:
        return [stage.name for stage in self._stages]

    def get_middleware(self, cls: type[Middleware]) -> Middleware | None:
        return next((stage for stage in self._stages if isinstance(stage, cls)), None)

    def _active(self, reverse: bool = False) -> Iterator[Middleware]:
        stages = reversed(self._stages) if reverse else iter(self._stages)
        return (stage for stage in stages if stage.name not in self._disabled)

    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        """Run the request phase. Returns the first rejection, or None to dispatch.

        Exceptions never escape: GatewayErrors become their own JSON body,
        a client disconnect becomes 499 and anything else a generic 500.
        """
        for stage in self._active():
            try:
                result = await stage.process_request(request, context)
            except Exception as exc:
                return _error_response(stage, exc)
            if result is not None:
                logger.info("middleware_short_circuit", middleware=stage.name, status=result.status_code)
                return result
        return None

    async def process_response(self, response: Response, context: RequestContext) -> Response:
        """Run the response phase. A failing stage is logged and skipped."""
        for stage in self._active(reverse=True):
            try:
                response = await stage.process_response(response, context)
            except Exception:
                logger.exception("middleware_response_error", middleware=stage.name)
        return response
