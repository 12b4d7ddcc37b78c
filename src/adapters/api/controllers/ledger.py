from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from src.adapters.api.dependencies import get_ledger_service
from src.adapters.api.schemas.converters import sample_to_schema
from src.adapters.api.schemas.fares import LocationSampleSchema
from src.app.services.location_ledger_service import LocationLedgerService

router = APIRouter(prefix="/vehicles", tags=["ledger"])


@router.get("/{vehicle_id}/ledger/latest", response_model=LocationSampleSchema)
def get_latest_sample(
    vehicle_id: str,
    ledger: LocationLedgerService = Depends(get_ledger_service),
) -> LocationSampleSchema:
    sample = ledger.latest_sample(vehicle_id)
    if sample is None:
        raise HTTPException(status_code=404, detail="No location data")
    return sample_to_schema(sample)


@router.get("/{vehicle_id}/ledger/{sequence_no}", response_model=LocationSampleSchema)
def get_sample(
    vehicle_id: str,
    sequence_no: int,
    ledger: LocationLedgerService = Depends(get_ledger_service),
) -> LocationSampleSchema:
    sample = ledger.sample_at(vehicle_id, sequence_no)
    if sample is None:
        raise HTTPException(status_code=404, detail="Sample not found")
    return sample_to_schema(sample)
