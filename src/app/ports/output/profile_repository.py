from __future__ import annotations

from abc import ABC, abstractmethod

from src.domain.models import Account, JourneyRecord


class IProfileRepository(ABC):
    """Rider accounts and their journey history.

    Writes are conditional on `expected_version`; a mismatch raises
    AccountConflict and nothing is written.
    """

    @abstractmethod
    def find_by_card(self, card_id: str) -> Account | None:
        raise NotImplementedError

    @abstractmethod
    def load_account(self, rider_id: str) -> Account | None:
        raise NotImplementedError

    @abstractmethod
    def save_account(self, account: Account, *, expected_version: int) -> Account:
        """Write the account and return it with its new version."""

    @abstractmethod
    def commit_settlement(
        self, account: Account, *, expected_version: int, journey: JourneyRecord
    ) -> Account:
        """Atomically add the journey and write the account."""

    @abstractmethod
    def list_journeys(self, rider_id: str) -> tuple[JourneyRecord, ...]:
        raise NotImplementedError
