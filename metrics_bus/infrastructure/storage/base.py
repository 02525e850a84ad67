from typing import Any, Optional, Protocol


class StoragePort(Protocol):
    """Key-value persistence for JSON-serialisable records.

    Implementations raise StorageError on failure; callers decide whether a
    failure matters.
    """

    async def load(self, key: str) -> Optional[Any]:
        """Stored value for ``key`` or None when absent."""
        ...

    async def save(self, key: str, value: Any) -> None: ...

    async def close(self) -> None: ...
