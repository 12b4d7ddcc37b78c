from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone

import pytest

from src.adapters.persistence import InMemoryLocationLedgerRepository
from src.app.services.location_ledger_service import LocationLedgerService
from src.domain.exceptions.fares import InvalidInput, LedgerWriteConflict, LedgerWriteFailed
from src.domain.models import LocationSample

T0 = datetime(2026, 10, 1, 8, 0, tzinfo=timezone.utc)


@dataclass
class RacingLedgerRepository:
    """Lets a competing writer take the next sequence number `conflicts` times."""

    inner: InMemoryLocationLedgerRepository
    conflicts: int = 1

    def append(self, sample: LocationSample) -> int:
        if self.conflicts > 0:
            self.conflicts -= 1
            self.inner.append(replace(sample, lat=0.0, lon=0.0))
            raise LedgerWriteConflict(f"#{sample.sequence_no} taken")
        return self.inner.append(sample)

    def latest(self, vehicle_id: str) -> LocationSample | None:
        return self.inner.latest(vehicle_id)

    def get(self, vehicle_id: str, sequence_no: int) -> LocationSample | None:
        return self.inner.get(vehicle_id, sequence_no)

    def range(self, vehicle_id: str, first: int, last: int) -> tuple[LocationSample, ...]:
        return self.inner.range(vehicle_id, first, last)


@dataclass
class BrokenLedgerRepository(RacingLedgerRepository):
    def append(self, sample: LocationSample) -> int:
        raise RuntimeError("store offline")


@dataclass
class SleepRecorder:
    calls: list[float] = field(default_factory=list)

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _service(**kwargs) -> LocationLedgerService:
    kwargs.setdefault("repository", InMemoryLocationLedgerRepository())
    kwargs.setdefault("sleep", SleepRecorder())
    return LocationLedgerService(**kwargs)


def test_first_sample_starts_the_ledger() -> None:
    svc = _service()
    sample = svc.append_sample("bus-1", 12.0, 77.0, T0)

    assert sample.sequence_no == 1
    assert sample.distance_from_previous_km == 0.0
    assert sample.cumulative_distance_km == 0.0
    assert svc.latest_sample("bus-1") == sample


def test_second_sample_accumulates_distance() -> None:
    svc = _service()
    svc.append_sample("bus-1", 12.0, 77.0, T0)
    second = svc.append_sample("bus-1", 12.01, 77.0, T0 + timedelta(seconds=30))

    assert second.sequence_no == 2
    assert second.distance_from_previous_km == pytest.approx(1.11, abs=0.01)
    assert second.cumulative_distance_km == second.distance_from_previous_km


def test_sequence_is_gap_free_and_distance_non_decreasing() -> None:
    svc = _service()
    route = [(12.0, 77.0), (12.01, 77.0), (12.01, 77.0), (12.02, 77.01), (12.0, 77.0)]
    samples = [
        svc.append_sample("bus-1", lat, lon, T0 + timedelta(minutes=i))
        for i, (lat, lon) in enumerate(route)
    ]

    assert [s.sequence_no for s in samples] == [1, 2, 3, 4, 5]
    for prev, cur in zip(samples, samples[1:]):
        assert cur.cumulative_distance_km >= prev.cumulative_distance_km
        assert cur.cumulative_distance_km == pytest.approx(
            prev.cumulative_distance_km + cur.distance_from_previous_km, abs=1e-7
        )
    # Standing still adds nothing.
    assert samples[2].distance_from_previous_km == 0.0


def test_vehicles_have_independent_ledgers() -> None:
    svc = _service()
    svc.append_sample("bus-1", 12.0, 77.0, T0)
    svc.append_sample("bus-1", 12.01, 77.0, T0)
    other = svc.append_sample("bus-2", 40.0, -3.7, T0)

    assert other.sequence_no == 1
    assert other.cumulative_distance_km == 0.0


@pytest.mark.parametrize(
    ("lat", "lon"),
    [
        (float("nan"), 77.0),
        (12.0, float("inf")),
        ("12.0", 77.0),
        (None, 77.0),
        (True, 77.0),
        (91.0, 77.0),
        (12.0, -181.0),
    ],
)
def test_invalid_coordinates_are_rejected(lat: object, lon: object) -> None:
    svc = _service()
    with pytest.raises(InvalidInput):
        svc.append_sample("bus-1", lat, lon, T0)
    assert svc.latest_sample("bus-1") is None


def test_conflicting_writer_is_retried_with_backoff() -> None:
    inner = InMemoryLocationLedgerRepository()
    sleep = SleepRecorder()
    svc = _service(repository=RacingLedgerRepository(inner, conflicts=2), sleep=sleep)

    sample = svc.append_sample("bus-1", 12.0, 77.0, T0)

    assert sample.sequence_no == 3
    assert [s.sequence_no for s in inner.range("bus-1", 1, 10)] == [1, 2, 3]
    assert sleep.calls == [0.05, 0.1]


def test_gives_up_after_max_attempts() -> None:
    inner = InMemoryLocationLedgerRepository()
    sleep = SleepRecorder()
    svc = _service(
        repository=RacingLedgerRepository(inner, conflicts=10), sleep=sleep, max_attempts=3
    )

    with pytest.raises(LedgerWriteFailed):
        svc.append_sample("bus-1", 12.0, 77.0, T0)
    # No sleep after the final attempt.
    assert len(sleep.calls) == 2


def test_store_errors_become_ledger_write_failed() -> None:
    svc = _service(repository=BrokenLedgerRepository(InMemoryLocationLedgerRepository()))
    with pytest.raises(LedgerWriteFailed):
        svc.append_sample("bus-1", 12.0, 77.0, T0)


def test_concurrent_appends_produce_unique_consecutive_sequence_numbers() -> None:
    svc = _service()

    def append(i: int) -> int:
        return svc.append_sample("bus-1", 12.0 + i * 0.001, 77.0, T0).sequence_no

    with ThreadPoolExecutor(max_workers=8) as pool:
        seqs = sorted(pool.map(append, range(50)))

    assert seqs == list(range(1, 51))


def test_samples_between() -> None:
    svc = _service()
    for i in range(5):
        svc.append_sample("bus-1", 12.0 + i * 0.01, 77.0, T0)

    assert [s.sequence_no for s in svc.samples_between("bus-1", 2, 4)] == [2, 3, 4]
    assert svc.samples_between("bus-1", 4, 2) == ()
    assert svc.sample_at("bus-1", 3) is not None
    assert svc.sample_at("bus-1", 9) is None
