from __future__ import annotations

from src.adapters.api.schemas.fares import (
    AccountSchema,
    EntrySchema,
    GeoPointSchema,
    IngressOutcomeSchema,
    JourneySchema,
    LocationSampleSchema,
)
from src.app.services.fare_collection_service import IngressOutcome
from src.domain.models import Account, JourneyRecord, LocationSample


def sample_to_schema(sample: LocationSample) -> LocationSampleSchema:
    return LocationSampleSchema(
        vehicle_id=sample.vehicle_id,
        sequence_no=sample.sequence_no,
        lat=sample.lat,
        lon=sample.lon,
        captured_at=sample.captured_at,
        distance_from_previous_km=sample.distance_from_previous_km,
        cumulative_distance_km=sample.cumulative_distance_km,
    )


def journey_to_schema(journey: JourneyRecord) -> JourneySchema:
    return JourneySchema(
        journey_id=journey.journey_id,
        rider_id=journey.rider_id,
        vehicle_id=journey.vehicle_id,
        entry_time=journey.entry_time,
        exit_time=journey.exit_time,
        entry_point=journey.entry_point_name,
        exit_point=journey.exit_point_name,
        distance_travelled_km=journey.distance_travelled_km,
        fare=journey.fare,
        fare_per_km=journey.fare_per_km,
        total_time_minutes=journey.total_time_minutes,
        path=[GeoPointSchema(lat=p.lat, lon=p.lon) for p in journey.path],
    )


def account_to_schema(account: Account) -> AccountSchema:
    return AccountSchema(
        rider_id=account.rider_id,
        balance=account.balance,
        bonus=account.bonus,
        total_spend_current_month=account.total_spend_current_month,
        count_bonus=account.count_bonus,
        last_reset_month=account.last_reset_month,
        on_journey=account.on_journey,
    )


def outcome_to_schema(outcome: IngressOutcome) -> IngressOutcomeSchema:
    return IngressOutcomeSchema(
        status=outcome.status.value,
        kind=outcome.kind.value,
        reason=outcome.reason,
        rider_id=outcome.rider_id,
        sample=sample_to_schema(outcome.sample) if outcome.sample else None,
        entry=(
            EntrySchema(
                entry_sequence_no=outcome.entry.entry_sequence_no,
                cumulative_distance_km=outcome.entry.cumulative_distance_km,
                entered_at=outcome.entry.entered_at,
            )
            if outcome.entry
            else None
        ),
        journey=journey_to_schema(outcome.journey) if outcome.journey else None,
    )
