"""FastAPI dependencies exposing pipeline results and app capabilities to route handlers."""

from __future__ import annotations

from typing import Any

from fastapi import Request

from gateway.middleware.pipeline import RequestContext
from gateway.store.cache import CacheClient


def get_request_context(request: Request) -> RequestContext:
    """Context the pipeline built for this request (a fresh one if the pipeline did not run)."""
    context = getattr(request.state, "context", None)
    if context is None:
        context = RequestContext()
        request.state.context = context
    return context


def sanitized_body(request: Request) -> Any:
    """Parsed request body after sanitization and operator-key stripping."""
    return get_request_context(request).body


def get_cache(request: Request) -> CacheClient | None:
    return getattr(request.app.state, "cache", None)
