from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from src.app.ports.output import (
    UNKNOWN_PLACE,
    IDeliveryDeduplicator,
    IPlaceNameProvider,
    IReconciliationReporter,
)
from src.app.services.boarding_service import BoardingStateMachine
from src.app.services.identity_service import IdentityResolver
from src.app.services.journey_service import JourneyReconstructor
from src.app.services.location_ledger_service import LocationLedgerService
from src.app.services.settlement_service import FareSettlementEngine
from src.domain.exceptions.fares import (
    BoardingConflict,
    InvalidInput,
    LedgerWriteFailed,
    NoLocationData,
    NotFound,
    SettlementFailed,
)
from src.domain.models import (
    EntryResult,
    ExitResult,
    JourneyPath,
    JourneyRecord,
    LocationSample,
    ScanEvent,
)

logger = logging.getLogger(__name__)

# Permanent per-event failures: the event is dropped and never retried.
_DROPPED_SCAN_ERRORS = (InvalidInput, NotFound, NoLocationData, BoardingConflict)


class IngressStatus(str, Enum):
    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    DROPPED = "dropped"


class IngressKind(str, Enum):
    LOCATION = "location"
    SCAN = "scan"
    ENTRY = "entry"
    EXIT = "exit"


@dataclass(frozen=True, slots=True)
class IngressOutcome:
    status: IngressStatus
    kind: IngressKind
    reason: str | None = None
    sample: LocationSample | None = None
    rider_id: str | None = None
    entry: EntryResult | None = None
    journey: JourneyRecord | None = None


def _as_utc(moment: datetime | None) -> datetime:
    """Aware UTC timestamp; naive values are taken as UTC, None means now."""

    if moment is None:
        return datetime.now(timezone.utc)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


@dataclass(slots=True)
class FareCollectionService:
    """Entry point for the two ingress streams of one vehicle.

    Location samples go to the ledger. Card scans are resolved to a rider,
    classified as entry or exit, and exits are reconstructed and settled.
    Every event is processed independently; failures are reported in the
    returned outcome rather than raised, except for unexpected errors.
    """

    ledger: LocationLedgerService
    identity: IdentityResolver
    boarding: BoardingStateMachine
    journeys: JourneyReconstructor
    settlement: FareSettlementEngine
    place_names: IPlaceNameProvider
    deduplicator: IDeliveryDeduplicator
    reconciliation: IReconciliationReporter

    def on_location_sample(
        self,
        vehicle_id: str,
        lat: Any,
        lon: Any,
        observed_at: datetime | None = None,
    ) -> IngressOutcome:
        observed_at = _as_utc(observed_at)
        key = f"location|{vehicle_id}|{observed_at.isoformat()}|{lat}|{lon}"
        if not self.deduplicator.first_delivery(key):
            logger.info("Ignoring duplicate location delivery %s", key)
            return IngressOutcome(IngressStatus.DUPLICATE, IngressKind.LOCATION)

        try:
            sample = self.ledger.append_sample(vehicle_id, lat, lon, observed_at)
        except InvalidInput as exc:
            logger.warning("Invalid location data for vehicle %s: %s", vehicle_id, exc)
            return IngressOutcome(
                IngressStatus.DROPPED, IngressKind.LOCATION, reason=type(exc).__name__
            )
        except LedgerWriteFailed as exc:
            self.deduplicator.release(key)
            logger.error("Location sample for vehicle %s not stored: %s", vehicle_id, exc)
            return IngressOutcome(
                IngressStatus.DROPPED, IngressKind.LOCATION, reason=type(exc).__name__
            )
        except Exception:
            self.deduplicator.release(key)
            raise

        return IngressOutcome(IngressStatus.ACCEPTED, IngressKind.LOCATION, sample=sample)

    def on_card_scan(
        self, vehicle_id: str, card_id: str, observed_at: datetime | None = None
    ) -> IngressOutcome:
        scan = ScanEvent(
            vehicle_id=vehicle_id, card_id=card_id, observed_at=_as_utc(observed_at)
        )
        key = f"scan|{scan.vehicle_id}|{scan.card_id}|{scan.observed_at.isoformat()}"
        if not self.deduplicator.first_delivery(key):
            logger.info("Ignoring duplicate scan delivery %s", key)
            return IngressOutcome(IngressStatus.DUPLICATE, IngressKind.SCAN)

        logger.info("Scanned card %s on vehicle %s", scan.card_id, scan.vehicle_id)
        try:
            account = self.identity.resolve_by_card(scan.card_id)
            transition = self.boarding.handle_scan(
                account.rider_id, scan.vehicle_id, scan.observed_at
            )
        except _DROPPED_SCAN_ERRORS as exc:
            logger.warning(
                "Scan of card %s on vehicle %s dropped: %s", scan.card_id, vehicle_id, exc
            )
            return IngressOutcome(
                IngressStatus.DROPPED, IngressKind.SCAN, reason=type(exc).__name__
            )
        except Exception:
            self.deduplicator.release(key)
            raise

        if isinstance(transition, EntryResult):
            return IngressOutcome(
                IngressStatus.ACCEPTED,
                IngressKind.ENTRY,
                rider_id=account.rider_id,
                entry=transition,
            )

        try:
            journey = self._complete_journey(transition, exit_time=scan.observed_at)
        except SettlementFailed as exc:
            return IngressOutcome(
                IngressStatus.DROPPED,
                IngressKind.EXIT,
                reason=type(exc).__name__,
                rider_id=account.rider_id,
            )
        return IngressOutcome(
            IngressStatus.ACCEPTED,
            IngressKind.EXIT,
            rider_id=account.rider_id,
            journey=journey,
        )

    def _complete_journey(self, exited: ExitResult, *, exit_time: datetime) -> JourneyRecord:
        path: JourneyPath | None = None
        try:
            path = self.journeys.reconstruct(
                exited.vehicle_id, exited.entry_sequence_no, exited.entry_cumulative_distance_km
            )
            # Two independent lookups: entry name from the entry sample, exit
            # name from the exit sample.
            entry_point = self._place_name(path.entry_sample)
            exit_point = self._place_name(path.exit_sample)
            return self.settlement.settle(
                exited.rider_id,
                path.distance_travelled_km,
                exited.entered_at,
                exit_time,
                entry_point,
                exit_point,
                path.points,
                vehicle_id=exited.vehicle_id,
            )
        except Exception as exc:
            failure = exc if isinstance(exc, SettlementFailed) else SettlementFailed(str(exc))
            logger.exception("Error processing exit for rider %s", exited.rider_id)
            self._report(exited, path, exit_time, failure)
            self._clear_on_journey(exited.rider_id)
            if failure is exc:
                raise
            raise failure from exc

    def _clear_on_journey(self, rider_id: str) -> None:
        # The boarding record is gone, so the flag must follow it even though
        # nothing was charged.
        try:
            self.boarding.mark_off_journey(rider_id)
        except Exception:
            logger.exception("Could not clear on_journey for rider %s", rider_id)

    def _place_name(self, sample: LocationSample | None) -> str:
        if sample is None:
            return UNKNOWN_PLACE
        return self.place_names.reverse_geocode(sample.lat, sample.lon)

    def _report(
        self,
        exited: ExitResult,
        path: JourneyPath | None,
        exit_time: datetime,
        failure: SettlementFailed,
    ) -> None:
        payload: dict[str, Any] = {
            "type": "settlement_failed",
            "rider_id": exited.rider_id,
            "vehicle_id": exited.vehicle_id,
            "entry_sequence_no": exited.entry_sequence_no,
            "entry_cumulative_distance_km": exited.entry_cumulative_distance_km,
            "entry_time": exited.entered_at.isoformat(),
            "exit_time": exit_time.isoformat(),
            "error": str(failure),
        }
        if path is not None:
            payload["exit_sequence_no"] = path.exit_sequence_no
            payload["distance_travelled_km"] = path.distance_travelled_km

        try:
            self.reconciliation.report_failed_settlement(payload)
        except Exception:
            logger.exception(
                "Could not report failed settlement for rider %s: %s",
                exited.rider_id,
                payload,
            )
