"""FastAPI application: request pipeline in front of the storefront API routers."""

from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import APIRouter, FastAPI
from fastapi.responses import PlainTextResponse, Response

from gateway.config.loader import GatewaySettings, load_settings
from gateway.health import router as health_router
from gateway.logging_config import setup_logging
from gateway.middleware.access_logger import AccessLogger
from gateway.middleware.body_parser import BodyParser
from gateway.middleware.cors_headers import CorsHeaders
from gateway.middleware.dispatch import PipelineMiddleware
from gateway.middleware.operator_stripper import OperatorKeyStripper
from gateway.middleware.origin_guard import OriginGuard
from gateway.middleware.pipeline import MiddlewarePipeline
from gateway.middleware.request_sanitizer import RequestSanitizer
from gateway.middleware.security_headers import SecurityHeaders
from gateway.middleware.version_gate import HeaderVersionValidator, VersionGate, VersionValidator
from gateway.store.cache import CacheClient

logger = structlog.get_logger()

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def build_pipeline(settings: GatewaySettings, version_validator: VersionValidator | None = None) -> MiddlewarePipeline:
    """Build the ordered middleware pipeline.

    Request phase runs top to bottom and stops at the first rejection.
    Response phase runs bottom to top, so AccessLogger logs the final status
    and CorsHeaders / SecurityHeaders also cover short-circuit responses.
    """
    whitelist = settings.whitelist
    if version_validator is None:
        version_validator = HeaderVersionValidator(minimum=settings.min_app_version)

    pipeline = MiddlewarePipeline()
    pipeline.add(AccessLogger())                                          # 0: request id, timing
    pipeline.add(SecurityHeaders())                                       # 1: response headers only
    pipeline.add(BodyParser(max_body_bytes=settings.max_body_bytes))      # 2: parse body
    pipeline.add(OriginGuard(whitelist, strict=settings.cors_strict))     # 3: 403 on blocked origin
    pipeline.add(CorsHeaders(max_age=settings.cors_max_age, strict=settings.cors_strict))  # 4: preflight 204
    pipeline.add(RequestSanitizer(max_depth=settings.sanitize_max_depth))  # 5: strip markup
    pipeline.add(OperatorKeyStripper())                                   # 6: drop $ / dotted keys
    pipeline.add(VersionGate(version_validator, prefix=settings.api_prefix))  # 7: client version
    return pipeline


def create_app(*routers: APIRouter, version_validator: VersionValidator | None = None) -> FastAPI:
    """Create the gateway app with ``routers`` mounted ahead of the 404 fallback."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown lifecycle. ConfigurationError aborts startup."""
        settings = load_settings()
        setup_logging(log_level=settings.log_level, json_format=settings.log_json)

        pipeline = build_pipeline(settings, version_validator)

        cache = CacheClient(
            settings.redis_url,
            pool_size=settings.redis_pool_size,
            max_retries=settings.redis_connect_retries,
        )
        await cache.connect()
        app.state.cache = cache
        app.state.pipeline = pipeline

        logger.info(
            "gateway_started",
            whitelist=list(settings.whitelist),
            strict_cors=settings.cors_strict,
            port=settings.listen_port,
        )

        try:
            yield
        finally:
            logger.info("gateway_shutting_down")
            app.state.pipeline = None
            await cache.close()
            logger.info("gateway_stopped")

    app = FastAPI(title="Storefront Gateway", lifespan=lifespan)
    app.add_middleware(PipelineMiddleware)

    app.include_router(health_router)
    for router in routers:
        app.include_router(router)

    @app.api_route("/{path:path}", methods=ALL_METHODS, include_in_schema=False)
    async def not_found(path: str) -> Response:
        return PlainTextResponse("API NOT FOUND", status_code=404)

    return app


app = create_app()
