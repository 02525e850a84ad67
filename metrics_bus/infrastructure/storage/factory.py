import redis.asyncio as redis

from metrics_bus.core.config import Settings
from metrics_bus.core.logger import get_logger

from shared.utils.retry import retry_async

from .base import StoragePort
from .file import FileStorage
from .memory import MemoryStorage
from .redis import RedisStorage

logger = get_logger("metrics_bus.storage")


async def build_storage(settings: Settings) -> StoragePort:
    backend = settings.storage_backend
    if backend == "memory":
        storage: StoragePort = MemoryStorage()
    elif backend == "redis":
        storage = RedisStorage(
            await _init_redis_with_retry(settings), settings.redis_key_prefix
        )
    else:
        storage = FileStorage(settings.storage_path)
    logger.info("storage_backend_selected", extra={"backend": backend})
    return storage


async def _init_redis_with_retry(settings: Settings) -> redis.Redis:
    async def _connect():
        r = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            decode_responses=True,
        )
        await r.ping()
        return r

    async def _on_retry(attempt: int, exc: BaseException, sleep_for: float):
        logger.warning(
            "redis_connect_retry",
            extra={
                "attempt": attempt,
                "error": str(exc),
                "sleep_for": round(sleep_for, 2),
            },
        )

    r = await retry_async(
        _connect,
        retries=settings.redis_connect_retries,
        base_delay=0.5,
        max_delay=8.0,
        jitter=0.2,
        on_retry=_on_retry,
    )
    logger.info("redis_connected")
    return r
