from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class GeoPointSchema(BaseModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lon: float = Field(..., ge=-180.0, le=180.0)


class LocationSampleRequestSchema(BaseModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lon: float = Field(..., ge=-180.0, le=180.0)
    observed_at: datetime | None = None


class CardScanRequestSchema(BaseModel):
    card_id: str = Field(..., min_length=1)
    observed_at: datetime | None = None


class LocationSampleSchema(BaseModel):
    vehicle_id: str
    sequence_no: int
    lat: float
    lon: float
    captured_at: datetime
    distance_from_previous_km: float
    cumulative_distance_km: float


class EntrySchema(BaseModel):
    entry_sequence_no: int
    cumulative_distance_km: float
    entered_at: datetime


class JourneySchema(BaseModel):
    journey_id: str
    rider_id: str
    vehicle_id: str | None = None
    entry_time: datetime
    exit_time: datetime
    entry_point: str
    exit_point: str
    distance_travelled_km: float
    fare: float
    fare_per_km: float
    total_time_minutes: float
    path: list[GeoPointSchema] = []


class IngressOutcomeSchema(BaseModel):
    status: Literal["accepted", "duplicate", "dropped"]
    kind: Literal["location", "scan", "entry", "exit"]
    reason: str | None = None
    rider_id: str | None = None
    sample: LocationSampleSchema | None = None
    entry: EntrySchema | None = None
    journey: JourneySchema | None = None


class AccountSchema(BaseModel):
    rider_id: str
    balance: float
    bonus: float
    total_spend_current_month: float
    count_bonus: int
    last_reset_month: str | None = None
    on_journey: bool
