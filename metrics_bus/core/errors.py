class MetricsBusError(Exception):
    """Base class for metrics bus failures."""


class FetchError(MetricsBusError):
    """The exposition could not be retrieved from the remote service."""

    def __init__(self, url: str, reason: str, status: int | None = None):
        self.url = url
        self.reason = reason
        self.status = status
        super().__init__(f"GET {url} failed: {reason}")


class StorageError(MetricsBusError):
    """A persisted record could not be read or written."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"storage failure for '{key}': {reason}")
