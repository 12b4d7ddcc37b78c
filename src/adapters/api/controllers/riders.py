from __future__ import annotations

from fastapi import APIRouter, Depends

from src.adapters.api.dependencies import get_profile_repository
from src.adapters.api.schemas.converters import account_to_schema, journey_to_schema
from src.adapters.api.schemas.fares import AccountSchema, JourneySchema
from src.app.ports.output import IProfileRepository
from src.domain.exceptions.fares import RiderNotFound

router = APIRouter(prefix="/riders", tags=["riders"])


@router.get("/{rider_id}/account", response_model=AccountSchema)
def get_account(
    rider_id: str,
    profiles: IProfileRepository = Depends(get_profile_repository),
) -> AccountSchema:
    account = profiles.load_account(rider_id)
    if account is None:
        raise RiderNotFound(f"No account for rider {rider_id}")
    return account_to_schema(account)


@router.get("/{rider_id}/journeys", response_model=list[JourneySchema])
def list_journeys(
    rider_id: str,
    profiles: IProfileRepository = Depends(get_profile_repository),
) -> list[JourneySchema]:
    return [journey_to_schema(j) for j in profiles.list_journeys(rider_id)]
