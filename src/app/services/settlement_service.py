from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from src.app.ports.output import IFareConfigProvider, IProfileRepository
from src.app.services.keyed_lock import KeyedLock
from src.domain.algorithms.settlement import compute_fare, month_key, settle_account
from src.domain.exceptions.fares import (
    AccountConflict,
    RiderNotFound,
    SettlementFailed,
    UpstreamUnavailable,
)
from src.domain.models import Account, GeoPoint, JourneyRecord

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FareSettlementEngine:
    """Charges a completed ride and updates the rider's account.

    The journey record and the account update are committed together. The
    account is read, recomputed and written under a per-rider lock, and the
    write is conditional on the version that was read; on conflict the whole
    computation is redone from a fresh snapshot.
    """

    profile_repository: IProfileRepository
    fare_config: IFareConfigProvider
    default_fare_per_km: float = 0.0
    max_attempts: int = 3

    _last_fare_per_km: float | None = field(default=None, init=False, repr=False)
    _locks: KeyedLock = field(default_factory=KeyedLock, init=False, repr=False)

    def current_fare_per_km(self) -> float:
        try:
            value = float(self.fare_config.current_fare_per_km())
        except UpstreamUnavailable as exc:
            fallback = (
                self._last_fare_per_km
                if self._last_fare_per_km is not None
                else self.default_fare_per_km
            )
            logger.warning("Fare config unavailable (%s); using %s per km", exc, fallback)
            return fallback
        self._last_fare_per_km = value
        return value

    def settle(
        self,
        rider_id: str,
        distance_travelled_km: float,
        entry_time: datetime,
        exit_time: datetime,
        entry_point: str,
        exit_point: str,
        path: Iterable[GeoPoint],
        *,
        vehicle_id: str | None = None,
    ) -> JourneyRecord:
        fare_per_km = self.current_fare_per_km()
        fare = compute_fare(fare_per_km, distance_travelled_km)

        journey = JourneyRecord(
            rider_id=rider_id,
            entry_time=entry_time,
            exit_time=exit_time,
            entry_point_name=entry_point,
            exit_point_name=exit_point,
            distance_travelled_km=distance_travelled_km,
            fare=fare,
            fare_per_km=fare_per_km,
            total_time_minutes=(exit_time - entry_time).total_seconds() / 60.0,
            path=tuple(path),
            vehicle_id=vehicle_id,
        )

        with self._locks.hold(rider_id):
            try:
                account = self._commit(journey, current_month=month_key(exit_time))
            except SettlementFailed:
                raise
            except Exception as exc:
                raise SettlementFailed(
                    f"Settlement for rider {rider_id} failed: {exc}"
                ) from exc

        logger.info(
            "Settled rider %s: %s km x %s = %s (balance %s, bonus %s)",
            rider_id,
            distance_travelled_km,
            fare_per_km,
            fare,
            account.balance,
            account.bonus,
        )
        return journey

    def _commit(self, journey: JourneyRecord, *, current_month: str) -> Account:
        for attempt in range(1, self.max_attempts + 1):
            account = self.profile_repository.load_account(journey.rider_id)
            if account is None:
                raise RiderNotFound(f"No account for rider {journey.rider_id}")

            updated = settle_account(account, fare=journey.fare, current_month=current_month)
            try:
                return self.profile_repository.commit_settlement(
                    updated, expected_version=account.version, journey=journey
                )
            except AccountConflict:
                logger.warning(
                    "Account %s changed during settlement (attempt %s/%s)",
                    journey.rider_id,
                    attempt,
                    self.max_attempts,
                )

        raise SettlementFailed(
            f"Account {journey.rider_id} kept changing; gave up after "
            f"{self.max_attempts} attempts"
        )
