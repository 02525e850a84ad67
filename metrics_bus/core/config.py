from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

from shared.config import BaseServiceConfig

DAY_MS = 24 * 60 * 60 * 1000


def ensure_protocol(host_or_url: str) -> str:
    """Prefix a bare ``host[:port]`` with http:// and drop a trailing slash."""
    value = host_or_url.strip()
    if not value:
        return value
    if not value.lower().startswith(("http://", "https://")):
        value = f"http://{value}"
    return value.rstrip("/")


class Settings(BaseServiceConfig, BaseSettings):
    # Remote exposition
    metrics_base_url: str = "http://localhost:8000"
    metrics_poll_interval_seconds: float = 20.0
    metrics_fetch_timeout_seconds: Optional[float] = None

    # History bounds
    history_max_age_days: int = 35
    history_max_points: int = 10_000

    # Persistence
    storage_backend: Literal["file", "redis", "memory"] = "file"
    storage_path: str = ".ark_metrics"
    redis_connect_retries: int = 6

    # Read API
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    api_top_n: int = 10

    otel_service_name: str = "metrics-bus"

    @field_validator("metrics_base_url")
    @classmethod
    def _normalise_base_url(cls, value: str) -> str:
        return ensure_protocol(value)

    @property
    def history_max_age_ms(self) -> int:
        return self.history_max_age_days * DAY_MS

    @property
    def metrics_url(self) -> str:
        return f"{self.metrics_base_url}/metrics"


settings = Settings()
