"""Env var config loading with pydantic-settings."""

from __future__ import annotations

import structlog
from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from gateway.config.whitelist import Whitelist
from gateway.errors import ConfigurationError
from gateway.middleware.version_gate import parse_version

logger = structlog.get_logger()


class GatewaySettings(BaseSettings):
    """Gateway configuration loaded from env vars (and an optional .env file)."""

    model_config = SettingsConfigDict(
        env_prefix="GATEWAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Required: comma-separated list of allowed origins
    cors_whitelist_urls: str = Field(
        validation_alias=AliasChoices("GATEWAY_CORS_WHITELIST_URLS", "CORS_WHITELIST_URLS"),
    )
    cors_strict: bool = False
    cors_max_age: int = 86400

    listen_host: str = "0.0.0.0"
    listen_port: int = 8080
    log_level: str = "info"
    log_json: bool = True

    # Cache
    redis_url: str = "redis://localhost:6379"
    redis_pool_size: int = 10
    redis_connect_retries: int = 5

    # Request body limit (50MB default)
    max_body_bytes: int = 50 * 1024 * 1024
    sanitize_max_depth: int = 64

    # Versioned API mount point and minimum supported client version ("" disables the check)
    api_prefix: str = "/clientApis"
    min_app_version: str = ""

    @field_validator("cors_whitelist_urls")
    @classmethod
    def _whitelist_not_blank(cls, value: str) -> str:
        if not value.strip(" ,"):
            raise ValueError("must list at least one origin")
        return value

    @field_validator("min_app_version")
    @classmethod
    def _min_version_parses(cls, value: str) -> str:
        value = value.strip()
        if value and parse_version(value) is None:
            raise ValueError("must be a dotted numeric version such as 2.1.0")
        return value

    @property
    def whitelist(self) -> Whitelist:
        return Whitelist.parse(self.cors_whitelist_urls)


_settings: GatewaySettings | None = None


def get_settings() -> GatewaySettings:
    """Get or create the singleton settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def load_settings() -> GatewaySettings:
    """Load settings from env vars. Raises ConfigurationError when required values are missing."""
    global _settings
    try:
        settings = GatewaySettings()
    except ValidationError as exc:
        fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
        logger.error("config_invalid", fields=fields)
        raise ConfigurationError(f"Invalid gateway configuration: {', '.join(fields)}") from exc
    _settings = settings
    logger.info("config_loaded", whitelist=list(settings.whitelist), port=settings.listen_port)
    return settings
