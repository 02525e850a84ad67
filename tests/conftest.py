import pytest

from tests.helpers.exposition import FakeClock


@pytest.fixture
def clock():
    return FakeClock()
