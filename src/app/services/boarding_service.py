from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime

from src.app.ports.output import IBoardingRepository, IProfileRepository
from src.app.services.keyed_lock import KeyedLock
from src.app.services.location_ledger_service import LocationLedgerService
from src.domain.exceptions.fares import (
    AccountConflict,
    BoardingConflict,
    NoLocationData,
    RiderNotFound,
)
from src.domain.models import BoardingRecord, EntryResult, ExitResult

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BoardingStateMachine:
    """Per-rider OFF_BOARD -> ON_BOARD -> OFF_BOARD transitions.

    A scan is an exit when a boarding record exists and an entry otherwise;
    scan timestamps are not compared with the GPS stream. The vehicle's
    latest ledger sample at processing time is taken as the current position,
    so a sample that lands just after the scan is attributed to the ride.
    """

    boarding_repository: IBoardingRepository
    ledger: LocationLedgerService
    profile_repository: IProfileRepository
    max_attempts: int = 3

    _locks: KeyedLock = field(default_factory=KeyedLock, init=False, repr=False)

    def handle_scan(
        self, rider_id: str, vehicle_id: str, observed_at: datetime
    ) -> EntryResult | ExitResult:
        with self._locks.hold(rider_id):
            record = self.boarding_repository.delete_if_present(rider_id)
            if record is not None:
                logger.info(
                    "Rider %s exited vehicle %s (entered at #%s)",
                    rider_id,
                    record.vehicle_id,
                    record.entry_sequence_no,
                )
                return ExitResult(
                    rider_id=rider_id,
                    vehicle_id=record.vehicle_id,
                    entry_sequence_no=record.entry_sequence_no,
                    entry_cumulative_distance_km=record.entry_cumulative_distance_km,
                    entered_at=record.entered_at,
                )
            return self._enter(rider_id, vehicle_id, observed_at)

    def is_on_board(self, rider_id: str) -> bool:
        return self.boarding_repository.get(rider_id) is not None

    def _enter(self, rider_id: str, vehicle_id: str, observed_at: datetime) -> EntryResult:
        latest = self.ledger.latest_sample(vehicle_id)
        if latest is None:
            raise NoLocationData(f"No location data for vehicle {vehicle_id}")

        record = BoardingRecord(
            rider_id=rider_id,
            vehicle_id=vehicle_id,
            entry_sequence_no=latest.sequence_no,
            entry_cumulative_distance_km=latest.cumulative_distance_km,
            entered_at=observed_at,
        )
        if not self.boarding_repository.create_if_absent(record):
            raise BoardingConflict(f"Rider {rider_id} was boarded by a concurrent scan")

        try:
            self._set_on_journey(rider_id, True)
        except Exception:
            # Undo the marker so the account flag and the record stay in step.
            self.boarding_repository.delete_if_present(rider_id)
            raise

        logger.info(
            "Rider %s entered vehicle %s at #%s (%s km)",
            rider_id,
            vehicle_id,
            latest.sequence_no,
            latest.cumulative_distance_km,
        )
        return EntryResult(
            rider_id=rider_id,
            entry_sequence_no=latest.sequence_no,
            cumulative_distance_km=latest.cumulative_distance_km,
            entered_at=observed_at,
        )

    def mark_off_journey(self, rider_id: str) -> None:
        """Clear `on_journey` after an exit whose settlement did not clear it.

        Only the flag changes; a rider who has boarded again in the meantime
        is left on the journey.
        """

        with self._locks.hold(rider_id):
            if self.boarding_repository.get(rider_id) is not None:
                return
            self._set_on_journey(rider_id, False)

    def _set_on_journey(self, rider_id: str, on_journey: bool) -> None:
        for _ in range(self.max_attempts):
            account = self.profile_repository.load_account(rider_id)
            if account is None:
                raise RiderNotFound(f"No account for rider {rider_id}")
            if account.on_journey == on_journey:
                return
            try:
                self.profile_repository.save_account(
                    replace(account, on_journey=on_journey), expected_version=account.version
                )
                return
            except AccountConflict:
                continue
        raise AccountConflict(f"Account {rider_id} kept changing while updating on_journey")
