"""Shared utilities and components for the metrics bus."""

from .config import BaseLoggingConfig, BaseRedisConfig, BaseServiceConfig
from .constants import StorageKeys

__all__ = [
    "StorageKeys",
    "BaseServiceConfig",
    "BaseLoggingConfig",
    "BaseRedisConfig",
]
