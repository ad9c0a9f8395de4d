"""Body parser middleware: decodes JSON and urlencoded bodies into the request context."""

from __future__ import annotations

import json
from urllib.parse import parse_qsl, urlencode

import structlog
from starlette.requests import Request
from starlette.responses import Response

from gateway.errors import MalformedInputError, PayloadTooLarge
from gateway.middleware.pipeline import Middleware, RequestContext

logger = structlog.get_logger()

_BODYLESS_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def _media_type(request: Request) -> str:
    return request.headers.get("content-type", "").split(";")[0].strip().lower()


def _parse_form(raw: bytes) -> dict[str, str | list[str]]:
    """Decode an urlencoded body. Repeated keys collect into a list."""
    form: dict[str, str | list[str]] = {}
    for key, value in parse_qsl(raw.decode("utf-8", errors="replace"), keep_blank_values=True):
        if key in form:
            existing = form[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                form[key] = [existing, value]
        else:
            form[key] = value
    return form


class BodyParser(Middleware):
    """Read the request body once, enforce the size limit and decode it.

    JSON bodies (``application/json`` and ``+json`` types) and urlencoded forms
    are decoded into ``context.body``. Other media types are left as None and
    downstream handlers read the raw stream themselves.
    """

    def __init__(self, max_body_bytes: int = 50 * 1024 * 1024) -> None:
        self._max_body_bytes = max_body_bytes

    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        if request.method in _BODYLESS_METHODS:
            return None

        content_length = request.headers.get("content-length")
        if content_length:
            try:
                declared = int(content_length)
            except ValueError:
                raise MalformedInputError("Invalid Content-Length.") from None
            if declared > self._max_body_bytes:
                raise PayloadTooLarge(limit=self._max_body_bytes)

        raw = await request.body()
        if len(raw) > self._max_body_bytes:
            raise PayloadTooLarge(limit=self._max_body_bytes)
        context.raw_body = raw
        if not raw:
            return None

        media_type = _media_type(request)
        if media_type == "application/json" or media_type.endswith("+json"):
            try:
                context.body = json.loads(raw)
            except (UnicodeDecodeError, json.JSONDecodeError) as exc:
                logger.info("malformed_json_body", error=str(exc))
                raise MalformedInputError("Malformed JSON body.") from None
            context.body_parsed = True
            context.body_format = "json"
        elif media_type == "application/x-www-form-urlencoded":
            context.body = _parse_form(raw)
            context.body_parsed = True
            context.body_format = "form"

        return None


def encode_body(context: RequestContext) -> bytes | None:
    """Bytes the router should receive in place of the original body.

    A decoded body is re-encoded in its original format so handlers see the
    pipeline's changes. An undecoded body is replayed as read. None means the
    body was never read.
    """
    if context.body_parsed:
        if context.body_format == "form":
            return urlencode(context.body or {}, doseq=True).encode("utf-8")
        return json.dumps(context.body, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    return context.raw_body
