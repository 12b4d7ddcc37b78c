from __future__ import annotations

from fastapi import APIRouter, Depends

from src.adapters.api.dependencies import get_fare_collection_service
from src.adapters.api.schemas.converters import outcome_to_schema
from src.adapters.api.schemas.fares import (
    CardScanRequestSchema,
    IngressOutcomeSchema,
    LocationSampleRequestSchema,
)
from src.app.services.fare_collection_service import FareCollectionService

router = APIRouter(prefix="/vehicles", tags=["ingress"])


@router.post("/{vehicle_id}/locations", response_model=IngressOutcomeSchema)
def post_location_sample(
    vehicle_id: str,
    req: LocationSampleRequestSchema,
    service: FareCollectionService = Depends(get_fare_collection_service),
) -> IngressOutcomeSchema:
    outcome = service.on_location_sample(
        vehicle_id, req.lat, req.lon, observed_at=req.observed_at
    )
    return outcome_to_schema(outcome)


@router.post("/{vehicle_id}/scans", response_model=IngressOutcomeSchema)
def post_card_scan(
    vehicle_id: str,
    req: CardScanRequestSchema,
    service: FareCollectionService = Depends(get_fare_collection_service),
) -> IngressOutcomeSchema:
    outcome = service.on_card_scan(vehicle_id, req.card_id, observed_at=req.observed_at)
    return outcome_to_schema(outcome)
