from __future__ import annotations

from abc import ABC, abstractmethod

from src.domain.models import BoardingRecord


class IBoardingRepository(ABC):
    """Per-rider boarding markers with atomic create/delete primitives."""

    @abstractmethod
    def get(self, rider_id: str) -> BoardingRecord | None:
        raise NotImplementedError

    @abstractmethod
    def create_if_absent(self, record: BoardingRecord) -> bool:
        """Store the record unless one exists for the rider. True if created."""

    @abstractmethod
    def delete_if_present(self, rider_id: str) -> BoardingRecord | None:
        """Remove and return the rider's record, or None if there was none."""
