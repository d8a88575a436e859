"""
Shared fixtures: a controllable clock and in-memory replicas.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from epi.core.schema import Child, VaccinationRecord
from epi.core.store import MemoryBackend, ReplicatedStore

T0 = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def local_store(clock):
    store = ReplicatedStore(MemoryBackend(), clock=clock, label="local")
    store.initialize()
    return store


@pytest.fixture
def remote_store(clock):
    store = ReplicatedStore(MemoryBackend(), clock=clock, label="remote")
    store.initialize()
    return store


@pytest.fixture
def child():
    return Child(id="c1", full_name="Awa Jallow", dob=date(2024, 1, 1),
                 health_center="Sukuta Health Centre")


def make_record(record_id: str, vaccine_id: str, child_id: str = "c1", status: str = "completed",
                not_administered: bool = False, updated_at: datetime = None,
                administered: date = date(2024, 3, 1)) -> VaccinationRecord:
    return VaccinationRecord(
        id=record_id,
        child_id=child_id,
        vaccine_id=vaccine_id,
        dose_number=1,
        date_administered=administered,
        administered_by="Nurse Touray",
        health_center="Sukuta Health Centre",
        status=status,
        not_administered=not_administered,
        updated_at=updated_at,
    )
