from .storage_keys import StorageKeys

__all__ = ["StorageKeys"]
