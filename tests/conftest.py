from datetime import datetime

import pytest

from gardenpi.store import ValveStateStore


class FixedClock:
    """Callable clock whose time tests can move."""

    def __init__(self, when: datetime):
        self.now = when

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 10, 19, 12, 0, 0))


@pytest.fixture
def store(clock):
    return ValveStateStore(clock=clock)
