from __future__ import annotations

from abc import ABC, abstractmethod

from src.domain.models import LocationSample


class ILocationLedgerRepository(ABC):
    """Ordered store of location samples keyed by (vehicle_id, sequence_no)."""

    @abstractmethod
    def append(self, sample: LocationSample) -> int:
        """Persist a sample whose sequence number must not exist yet.

        Raises LedgerWriteConflict when another writer already took
        `sample.sequence_no`. Returns the stored sequence number.
        """

    @abstractmethod
    def latest(self, vehicle_id: str) -> LocationSample | None:
        raise NotImplementedError

    @abstractmethod
    def get(self, vehicle_id: str, sequence_no: int) -> LocationSample | None:
        raise NotImplementedError

    @abstractmethod
    def range(
        self, vehicle_id: str, first_sequence_no: int, last_sequence_no: int
    ) -> tuple[LocationSample, ...]:
        """Return stored samples with first <= sequence_no <= last, ascending."""
