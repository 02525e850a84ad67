import json
from typing import Any, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from metrics_bus.core.errors import StorageError

from shared.constants import StorageKeys


class RedisStorage:
    """Records stored as JSON strings under (optionally prefixed) keys."""

    def __init__(self, redis: Redis, key_prefix: str = ""):
        self.r = redis
        self.key_prefix = key_prefix

    def _key(self, key: str) -> str:
        return StorageKeys.prefixed(key, self.key_prefix)

    async def load(self, key: str) -> Optional[Any]:
        try:
            raw = await self.r.get(self._key(key))
        except RedisError as e:
            raise StorageError(key, f"redis get failed: {e}") from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            raise StorageError(key, f"corrupt json: {e}") from e

    async def save(self, key: str, value: Any) -> None:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(key, f"not serialisable: {e}") from e
        try:
            await self.r.set(self._key(key), payload)
        except RedisError as e:
            raise StorageError(key, f"redis set failed: {e}") from e

    async def close(self) -> None:
        await self.r.close()
