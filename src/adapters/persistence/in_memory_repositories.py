from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace

from src.app.ports.output import (
    IBoardingRepository,
    IDeliveryDeduplicator,
    ILocationLedgerRepository,
    IProfileRepository,
)
from src.domain.exceptions.fares import AccountConflict, LedgerWriteConflict
from src.domain.models import Account, BoardingRecord, JourneyRecord, LocationSample


@dataclass(slots=True)
class InMemoryLocationLedgerRepository(ILocationLedgerRepository):
    """Process-local ledger; used for local runs and tests."""

    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _samples: dict[str, dict[int, LocationSample]] = field(default_factory=dict, init=False)

    def append(self, sample: LocationSample) -> int:
        with self._lock:
            rows = self._samples.setdefault(sample.vehicle_id, {})
            if sample.sequence_no in rows:
                raise LedgerWriteConflict(
                    f"{sample.vehicle_id} #{sample.sequence_no} already exists"
                )
            rows[sample.sequence_no] = sample
            return sample.sequence_no

    def latest(self, vehicle_id: str) -> LocationSample | None:
        with self._lock:
            rows = self._samples.get(vehicle_id)
            if not rows:
                return None
            return rows[max(rows)]

    def get(self, vehicle_id: str, sequence_no: int) -> LocationSample | None:
        with self._lock:
            return self._samples.get(vehicle_id, {}).get(sequence_no)

    def range(
        self, vehicle_id: str, first_sequence_no: int, last_sequence_no: int
    ) -> tuple[LocationSample, ...]:
        with self._lock:
            rows = self._samples.get(vehicle_id, {})
            return tuple(
                rows[seq]
                for seq in sorted(rows)
                if first_sequence_no <= seq <= last_sequence_no
            )

    def remove(self, vehicle_id: str, sequence_no: int) -> None:
        """Drop a row; only used to simulate ledger gaps."""

        with self._lock:
            self._samples.get(vehicle_id, {}).pop(sequence_no, None)


@dataclass(slots=True)
class InMemoryBoardingRepository(IBoardingRepository):
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _records: dict[str, BoardingRecord] = field(default_factory=dict, init=False)

    def get(self, rider_id: str) -> BoardingRecord | None:
        with self._lock:
            return self._records.get(rider_id)

    def create_if_absent(self, record: BoardingRecord) -> bool:
        with self._lock:
            if record.rider_id in self._records:
                return False
            self._records[record.rider_id] = record
            return True

    def delete_if_present(self, rider_id: str) -> BoardingRecord | None:
        with self._lock:
            return self._records.pop(rider_id, None)


@dataclass(slots=True)
class InMemoryProfileRepository(IProfileRepository):
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _accounts: dict[str, Account] = field(default_factory=dict, init=False)
    _journeys: dict[str, list[JourneyRecord]] = field(default_factory=dict, init=False)

    def add_account(self, account: Account) -> None:
        with self._lock:
            self._accounts[account.rider_id] = account

    def find_by_card(self, card_id: str) -> Account | None:
        with self._lock:
            for account in self._accounts.values():
                if account.card_id == card_id:
                    return account
            return None

    def load_account(self, rider_id: str) -> Account | None:
        with self._lock:
            return self._accounts.get(rider_id)

    def _write(self, account: Account, expected_version: int) -> Account:
        current = self._accounts.get(account.rider_id)
        current_version = current.version if current is not None else 0
        if current_version != expected_version:
            raise AccountConflict(
                f"Account {account.rider_id} is at version {current_version}, "
                f"expected {expected_version}"
            )
        stored = replace(account, version=expected_version + 1)
        self._accounts[account.rider_id] = stored
        return stored

    def save_account(self, account: Account, *, expected_version: int) -> Account:
        with self._lock:
            return self._write(account, expected_version)

    def commit_settlement(
        self, account: Account, *, expected_version: int, journey: JourneyRecord
    ) -> Account:
        with self._lock:
            stored = self._write(account, expected_version)
            self._journeys.setdefault(account.rider_id, []).append(journey)
            return stored

    def list_journeys(self, rider_id: str) -> tuple[JourneyRecord, ...]:
        with self._lock:
            return tuple(self._journeys.get(rider_id, ()))


@dataclass(slots=True)
class InMemoryDeliveryDeduplicator(IDeliveryDeduplicator):
    """Remembers the most recent `capacity` delivery keys."""

    capacity: int = 10_000

    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _seen: dict[str, None] = field(default_factory=dict, init=False, repr=False)

    def first_delivery(self, key: str) -> bool:
        with self._lock:
            if key in self._seen:
                return False
            self._seen[key] = None
            while len(self._seen) > self.capacity:
                # dicts keep insertion order; evict the oldest key.
                del self._seen[next(iter(self._seen))]
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._seen.pop(key, None)
