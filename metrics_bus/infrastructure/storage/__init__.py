from .base import StoragePort
from .factory import build_storage
from .file import FileStorage
from .memory import MemoryStorage
from .redis import RedisStorage

__all__ = [
    "StoragePort",
    "FileStorage",
    "MemoryStorage",
    "RedisStorage",
    "build_storage",
]
