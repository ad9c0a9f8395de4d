"""Version compatibility gate: rejects outdated clients before they reach the versioned API."""

from __future__ import annotations

import re
from typing import Protocol

import structlog
from starlette.requests import Request
from starlette.responses import Response

from gateway.errors import VersionMismatch
from gateway.middleware.pipeline import Middleware, RequestContext
from gateway.utils.sanitize import strip_control_chars

logger = structlog.get_logger()

APP_VERSION_HEADER = "x-app-version"

_VERSION_RE = re.compile(r"^v?(\d+(?:\.\d+){0,3})$")


class VersionValidator(Protocol):
    """Collaborator deciding whether a client version may use the API.

    ``validate`` returns None when the request may proceed and raises
    VersionMismatch otherwise.
    """

    def validate(self, request: Request) -> None: ...


def parse_version(value: str) -> tuple[int, ...] | None:
    """Parse ``1.2.3`` (optionally ``v``-prefixed) into a comparable tuple."""
    match = _VERSION_RE.match(value.strip())
    if not match:
        return None
    return tuple(int(part) for part in match.group(1).split("."))


def _pad(version: tuple[int, ...], width: int) -> tuple[int, ...]:
    return version + (0,) * (width - len(version))


class HeaderVersionValidator:
    """Compare the ``X-App-Version`` header against a minimum supported version."""

    def __init__(self, minimum: str = "", header: str = APP_VERSION_HEADER) -> None:
        self._header = header
        self._minimum_raw = minimum.strip()
        self._minimum = parse_version(self._minimum_raw) if self._minimum_raw else None
        if self._minimum_raw and self._minimum is None:
            raise ValueError(f"invalid minimum app version: {minimum!r}")

    def validate(self, request: Request) -> None:
        if self._minimum is None:
            return

        declared = request.headers.get(self._header)
        if not declared:
            raise VersionMismatch("App version header is required.", status_code=400, header=self._header)

        version = parse_version(declared)
        if version is None:
            raise VersionMismatch(
                "App version is not valid.",
                status_code=400,
                version=strip_control_chars(declared[:64]),
            )

        width = max(len(version), len(self._minimum))
        if _pad(version, width) < _pad(self._minimum, width):
            raise VersionMismatch(version=declared, minimum_version=self._minimum_raw)


class VersionGate(Middleware):
    """Run the version validator for requests under the API prefix."""

    def __init__(self, validator: VersionValidator, prefix: str = "/clientApis") -> None:
        self._validator = validator
        self._prefix = prefix.rstrip("/")

    def _applies_to(self, path: str) -> bool:
        if not self._prefix:
            return True
        return path == self._prefix or path.startswith(self._prefix + "/")

    async def process_request(self, request: Request, context: RequestContext) -> Response | None:
        if not self._applies_to(request.url.path):
            return None
        try:
            self._validator.validate(request)
        except VersionMismatch as exc:
            logger.info("app_version_rejected", status=exc.status_code, **exc.fields)
            raise
        return None
