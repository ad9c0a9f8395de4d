"""Operator key stripper: drops query-operator keys from the request body."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog
from starlette.requests import Request
from starlette.responses import Response

from gateway.middleware.pipeline import Middleware, RequestContext
from gateway.utils.sanitize import strip_control_chars

logger = structlog.get_logger()


def is_operator_key(key: object) -> bool:
    """Keys starting with ``$`` or containing ``.`` can smuggle query operators or paths."""
    return isinstance(key, str) and (key.startswith("$") or "." in key)


def strip_operator_keys(value: Any, removed: list[str] | None = None, path: str = "body") -> Any:
    """Return a copy of ``value`` without operator keys, at any depth.

    Dropped key paths are appended to ``removed`` when given.
    """
    if isinstance(value, Mapping):
        clean: dict[Any, Any] = {}
        for key, child in value.items():
            child_path = f"{path}.{key}"
            if is_operator_key(key):
                if removed is not None:
                    removed.append(child_path)
                continue
            clean[key] = strip_operator_keys(child, removed, child_path)
        return clean
    if isinstance(value, list):
        return [
            strip_operator_keys(child, removed, f"{path}[{index}]")
            for index, child in enumerate(value)
        ]
    return value


class OperatorKeyStripper(Middleware):
    """Remove ``$``-prefixed and dotted keys from the sanitized body before routing."""

    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        if not context.body_parsed:
            return None
        removed: list[str] = []
        context.body = strip_operator_keys(context.body, removed)
        for key_path in removed:
            logger.warning(
                "request_key_sanitized",
                key=strip_control_chars(key_path),
                path=request.url.path,
            )
        return None
