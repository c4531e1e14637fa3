"""Shared fixtures for MedRegistry tests."""

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from medregistry.adapters.ledger import InMemoryLedger
from medregistry.dispatcher import RegistryDispatcher

START = datetime(2024, 1, 1, tzinfo=timezone.utc)
START_UNIX = 1704067200


class FakeClock:
    """Controllable UTC clock; advances one second per call unless frozen."""

    def __init__(self, start: datetime = START, step: timedelta = timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + self.step
        return current

    def set(self, when: datetime) -> None:
        self.now = when


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tx_ids():
    counter = count(1)
    return lambda: f"tx-{next(counter)}"


@pytest.fixture
def ledger(clock, tx_ids):
    return InMemoryLedger(clock=clock, tx_id_factory=tx_ids)


@pytest.fixture
def dispatcher(ledger):
    return RegistryDispatcher(ledger)
