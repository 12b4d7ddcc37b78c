from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .geo import GeoPoint


@dataclass(frozen=True, slots=True)
class LocationSample:
    """One accepted GPS sample in a vehicle's append-only ledger.

    `sequence_no` is assigned by the ledger (first sample is 1, then +1 per
    accepted sample). Distances are kilometres rounded to 8 decimal places.
    """

    vehicle_id: str
    sequence_no: int
    lat: float
    lon: float
    captured_at: datetime
    distance_from_previous_km: float = 0.0
    cumulative_distance_km: float = 0.0

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lon=self.lon)
