"""Gateway error hierarchy.

Per-request errors are raised by pipeline stages and converted to JSON
responses at the pipeline boundary. ``ConfigurationError`` is the only one
raised at startup; it aborts the process before the port is bound.
"""

from __future__ import annotations

from typing import Any

from starlette.responses import JSONResponse


class GatewayError(Exception):
    """Base error carrying the HTTP status and JSON body it maps to."""

    status_code: int = 500
    default_message: str = "Internal server error."

    def __init__(self, message: str | None = None, **fields: Any) -> None:
        self.message = message or self.default_message
        self.fields = fields
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        body.update(self.fields)
        return body

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.to_body())


class ConfigurationError(GatewayError):
    """Required startup configuration is missing or invalid."""

    default_message = "Invalid gateway configuration."


class CorsViolation(GatewayError):
    """Request origin is not on the whitelist."""

    status_code = 403
    default_message = "CORS policy does not allow access from this origin."

    def __init__(self, origin: str) -> None:
        super().__init__(origin=origin)
        self.origin = origin


class VersionMismatch(GatewayError):
    """Client app version is missing, unparsable or too old."""

    status_code = 426
    default_message = "App version is no longer supported. Please update the app."

    def __init__(self, message: str | None = None, status_code: int | None = None, **fields: Any) -> None:
        super().__init__(message, **fields)
        if status_code is not None:
            self.status_code = status_code


class MalformedInputError(GatewayError):
    """Request body cannot be parsed or is nested beyond the allowed depth."""

    status_code = 400
    default_message = "Malformed request body."


class PayloadTooLarge(GatewayError):
    status_code = 413
    default_message = "Request body too large."


class SanitizationFailure(GatewayError):
    """Unexpected failure inside the sanitizer. Never exposes the cause."""

    status_code = 500
