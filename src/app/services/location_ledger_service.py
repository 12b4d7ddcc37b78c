from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from src.app.ports.output import ILocationLedgerRepository
from src.app.services.keyed_lock import KeyedLock
from src.domain.algorithms.geo_utils import haversine_distance_km, round_km
from src.domain.exceptions.fares import (
    FareServiceError,
    InvalidInput,
    LedgerWriteConflict,
    LedgerWriteFailed,
)
from src.domain.models import GeoPoint, LocationSample

logger = logging.getLogger(__name__)


def _coordinate(name: str, value: Any) -> float:
    # bool is an int subclass; a True latitude is a payload bug, not 1.0.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInput(f"{name} must be a number, got {value!r}")
    out = float(value)
    if not math.isfinite(out):
        raise InvalidInput(f"{name} must be finite, got {value!r}")
    return out


def _next_sample(
    vehicle_id: str,
    previous: LocationSample | None,
    point: GeoPoint,
    observed_at: datetime,
) -> LocationSample:
    if previous is None:
        return LocationSample(
            vehicle_id=vehicle_id,
            sequence_no=1,
            lat=point.lat,
            lon=point.lon,
            captured_at=observed_at,
        )

    step_km = haversine_distance_km(previous.lat, previous.lon, point.lat, point.lon)
    return LocationSample(
        vehicle_id=vehicle_id,
        sequence_no=previous.sequence_no + 1,
        lat=point.lat,
        lon=point.lon,
        captured_at=observed_at,
        distance_from_previous_km=round_km(step_km),
        cumulative_distance_km=round_km(previous.cumulative_distance_km + step_km),
    )


@dataclass(slots=True)
class LocationLedgerService:
    """Append-only, gap-free ledger of a vehicle's positions.

    Appends are serialized per vehicle in-process; a conflicting writer in
    another process surfaces as LedgerWriteConflict from the store, and the
    append is recomputed from the new latest sample with exponential backoff.
    """

    repository: ILocationLedgerRepository
    max_attempts: int = 5
    initial_backoff_s: float = 0.05
    max_backoff_s: float = 1.0
    sleep: Callable[[float], None] = time.sleep

    _locks: KeyedLock = field(default_factory=KeyedLock, init=False, repr=False)

    def append_sample(
        self, vehicle_id: str, lat: Any, lon: Any, observed_at: datetime
    ) -> LocationSample:
        lat_f = _coordinate("lat", lat)
        lon_f = _coordinate("lon", lon)
        try:
            point = GeoPoint(lat=lat_f, lon=lon_f)
        except ValueError as exc:
            raise InvalidInput(str(exc)) from exc

        with self._locks.hold(vehicle_id):
            delay = self.initial_backoff_s
            for attempt in range(1, self.max_attempts + 1):
                try:
                    previous = self.repository.latest(vehicle_id)
                    sample = _next_sample(vehicle_id, previous, point, observed_at)
                    self.repository.append(sample)
                except LedgerWriteConflict:
                    logger.warning(
                        "Ledger conflict for vehicle %s (attempt %s/%s)",
                        vehicle_id,
                        attempt,
                        self.max_attempts,
                    )
                    if attempt < self.max_attempts:
                        self.sleep(delay)
                        delay = min(delay * 2.0, self.max_backoff_s)
                    continue
                except FareServiceError:
                    raise
                except Exception as exc:
                    raise LedgerWriteFailed(
                        f"Could not append sample for vehicle {vehicle_id}: {exc}"
                    ) from exc

                logger.info(
                    "Ledger %s #%s at (%s, %s): +%s km, total %s km",
                    vehicle_id,
                    sample.sequence_no,
                    sample.lat,
                    sample.lon,
                    sample.distance_from_previous_km,
                    sample.cumulative_distance_km,
                )
                return sample

        raise LedgerWriteFailed(
            f"Gave up appending sample for vehicle {vehicle_id} "
            f"after {self.max_attempts} conflicting attempts"
        )

    def latest_sample(self, vehicle_id: str) -> LocationSample | None:
        return self.repository.latest(vehicle_id)

    def sample_at(self, vehicle_id: str, sequence_no: int) -> LocationSample | None:
        return self.repository.get(vehicle_id, sequence_no)

    def samples_between(
        self, vehicle_id: str, first_sequence_no: int, last_sequence_no: int
    ) -> tuple[LocationSample, ...]:
        if first_sequence_no > last_sequence_no:
            return ()
        return self.repository.range(vehicle_id, first_sequence_no, last_sequence_no)
