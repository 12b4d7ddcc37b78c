from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

from .geo import GeoPoint
from .ledger import LocationSample


@dataclass(frozen=True, slots=True)
class JourneyPath:
    """Traveled path rebuilt from the ledger between entry and exit."""

    entry_sequence_no: int
    exit_sequence_no: int
    points: tuple[GeoPoint, ...]
    distance_travelled_km: float
    entry_sample: LocationSample | None = None
    exit_sample: LocationSample | None = None


@dataclass(frozen=True, slots=True)
class JourneyRecord:
    rider_id: str
    entry_time: datetime
    exit_time: datetime
    entry_point_name: str
    exit_point_name: str
    distance_travelled_km: float
    fare: float
    fare_per_km: float
    total_time_minutes: float
    path: tuple[GeoPoint, ...] = ()
    vehicle_id: str | None = None
    journey_id: str = field(default_factory=lambda: str(uuid4()))
