from datetime import datetime, timedelta, timezone

import pytest

from chorearoo.service import AllowanceBank
from chorearoo.store import EntityStore


class FakeClock:
    """Deterministic stand-in for ``datetime.now``."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now += timedelta(**delta)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    # Wednesday; the week started on Sunday 2024-05-12.
    return FakeClock(datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    entity_store = EntityStore(in_memory=True)
    yield entity_store
    entity_store.close()


@pytest.fixture
def bank(store: EntityStore, clock: FakeClock) -> AllowanceBank:
    return AllowanceBank(store, clock=clock)
