import pytest

from metrics_bus.infrastructure.storage import MemoryStorage
from metrics_bus.metrics.retention import RetentionPolicy
from metrics_bus.services.history_store import HistoryStore


@pytest.fixture
def memory_storage():
    """In-process storage for unit tests"""
    return MemoryStorage()


@pytest.fixture
def history_store(memory_storage, clock):
    return HistoryStore(memory_storage, RetentionPolicy(), clock)
