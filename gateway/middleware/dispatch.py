"""ASGI glue between the server, the request pipeline and the routers.

Runs the pipeline's request phase, hands the router the body the pipeline
produced, and runs the response phase on the ``http.response.start``
message so streamed responses are never buffered.
"""

from __future__ import annotations

import structlog
from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from gateway.middleware.body_parser import encode_body
from gateway.middleware.pipeline import MiddlewarePipeline, RequestContext

logger = structlog.get_logger()


def _replay(body: bytes, receive: Receive) -> Receive:
    """Receive channel that yields ``body`` once, then defers to the server (disconnects)."""
    sent = False

    async def replay() -> Message:
        nonlocal sent
        if not sent:
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay


def _with_body_length(scope: Scope, length: int) -> Scope:
    scope = dict(scope)
    headers = MutableHeaders(scope=scope)
    if "transfer-encoding" in headers:
        del headers["transfer-encoding"]
    headers["content-length"] = str(length)
    return scope


class PipelineMiddleware:
    """Pure ASGI middleware running the app's ``MiddlewarePipeline`` around every HTTP request."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        pipeline: MiddlewarePipeline | None = getattr(request.app.state, "pipeline", None)
        if pipeline is None:
            await PlainTextResponse("Gateway not initialized", status_code=503)(scope, receive, send)
            return

        context = RequestContext()
        request.state.context = context

        rejection = await pipeline.process_request(request, context)
        if rejection is not None:
            response = await pipeline.process_response(rejection, context)
            await response(scope, receive, send)
            return

        body = encode_body(context)
        if body is not None:
            scope = _with_body_length(scope, len(body))
            receive = _replay(body, receive)

        async def send_through_pipeline(message: Message) -> None:
            if message["type"] == "http.response.start":
                shell = Response(status_code=message["status"])
                shell.raw_headers = list(message.get("headers", []))
                shell = await pipeline.process_response(shell, context)
                message = {**message, "headers": shell.headers.raw}
            await send(message)

        await self.app(scope, receive, send_through_pipeline)
