"""Shared configuration base classes.

Logging and Redis settings are common to every runtime that embeds the
metrics bus; concrete settings classes inherit from these.
"""

from pydantic_settings import BaseSettings


class BaseLoggingConfig(BaseSettings):
    """Common logging configuration."""

    app_log_level: str = "INFO"
    app_log_redaction_patterns: list[str] = [
        "password",
        "token",
        "secret",
        "authorization",
        "cookie",
        "session",
    ]
    app_environment: str = "production"


class BaseRedisConfig(BaseSettings):
    """Connection settings for the optional Redis storage backend."""

    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_key_prefix: str = ""


class BaseServiceConfig(BaseLoggingConfig, BaseRedisConfig):
    """Base configuration combining logging and Redis settings.

    The otel_service_name should be overridden by the concrete settings.
    """

    otel_service_name: str = "unknown"


__all__ = ["BaseLoggingConfig", "BaseRedisConfig", "BaseServiceConfig"]
