import json
from typing import Any, Dict, Optional

from metrics_bus.core.errors import StorageError


class MemoryStorage:
    """In-process storage; values go through JSON like the durable backends."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.records: Dict[str, str] = dict(initial or {})

    async def load(self, key: str) -> Optional[Any]:
        raw = self.records.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            raise StorageError(key, f"corrupt json: {e}") from e

    async def save(self, key: str, value: Any) -> None:
        try:
            self.records[key] = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(key, f"not serialisable: {e}") from e

    async def close(self) -> None:
        return None
