from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from src.adapters.fares.fare_config_providers import (
    DynamoDbFareConfigProvider,
    StaticFareConfigProvider,
)
from src.adapters.geocoding.nominatim_place_name_provider import (
    NominatimPlaceNameProvider,
)
from src.adapters.messaging.reconciliation_reporters import (
    LogReconciliationReporter,
    QueueReconciliationReporter,
)
from src.adapters.messaging.sqs_queue_adapter import SQSQueueAdapter
from src.adapters.persistence import (
    DynamoDbBoardingRepository,
    DynamoDbDeliveryDeduplicator,
    DynamoDbLocationLedgerRepository,
    DynamoDbProfileRepository,
    InMemoryBoardingRepository,
    InMemoryDeliveryDeduplicator,
    InMemoryLocationLedgerRepository,
    InMemoryProfileRepository,
)
from src.adapters.persistence.local_account_seed import seed_accounts_from_csv
from src.app.ports.output import (
    IBoardingRepository,
    IDeliveryDeduplicator,
    IFareConfigProvider,
    ILocationLedgerRepository,
    IProfileRepository,
    IReconciliationReporter,
)
from src.app.services.boarding_service import BoardingStateMachine
from src.app.services.fare_collection_service import FareCollectionService
from src.app.services.identity_service import IdentityResolver
from src.app.services.journey_service import JourneyReconstructor
from src.app.services.location_ledger_service import LocationLedgerService
from src.app.services.settlement_service import FareSettlementEngine
from src.config import FareServiceConfig


@dataclass(frozen=True, slots=True)
class Stores:
    ledger: ILocationLedgerRepository
    boarding: IBoardingRepository
    profiles: IProfileRepository
    deduplicator: IDeliveryDeduplicator


def build_stores(config: FareServiceConfig) -> Stores:
    if config.store == "dynamodb":
        return Stores(
            ledger=DynamoDbLocationLedgerRepository(table_name=config.ledger_table),
            boarding=DynamoDbBoardingRepository(table_name=config.boarding_table),
            profiles=DynamoDbProfileRepository(
                accounts_table=config.accounts_table,
                journeys_table=config.journeys_table,
                card_index_name=config.card_index_name,
            ),
            deduplicator=DynamoDbDeliveryDeduplicator(table_name=config.dedup_table),
        )
    if config.store != "memory":
        raise RuntimeError(f"Unknown FAREBOX_STORE: {config.store!r}")

    profiles = InMemoryProfileRepository()
    if config.accounts_seed_path:
        seed_accounts_from_csv(profiles, config.accounts_seed_path)
    return Stores(
        ledger=InMemoryLocationLedgerRepository(),
        boarding=InMemoryBoardingRepository(),
        profiles=profiles,
        deduplicator=InMemoryDeliveryDeduplicator(),
    )


def build_fare_config(config: FareServiceConfig) -> IFareConfigProvider:
    if config.fare_per_km is not None:
        return StaticFareConfigProvider(fare_per_km=config.fare_per_km)
    if config.store == "dynamodb":
        return DynamoDbFareConfigProvider(
            table_name=config.fare_config_table, config_id=config.fare_config_id
        )
    return StaticFareConfigProvider(fare_per_km=config.fare_default_per_km)


def build_reconciliation_reporter(config: FareServiceConfig) -> IReconciliationReporter:
    if config.reconciliation_queue_url:
        return QueueReconciliationReporter(
            queue=SQSQueueAdapter(
                queue_url=config.reconciliation_queue_url,
                queue_url_env="RECONCILIATION_QUEUE_URL",
            )
        )
    return LogReconciliationReporter()


def build_fare_collection_service(
    config: FareServiceConfig, stores: Stores
) -> FareCollectionService:
    ledger = LocationLedgerService(
        repository=stores.ledger, max_attempts=config.ledger_max_attempts
    )
    return FareCollectionService(
        ledger=ledger,
        identity=IdentityResolver(profile_repository=stores.profiles),
        boarding=BoardingStateMachine(
            boarding_repository=stores.boarding,
            ledger=ledger,
            profile_repository=stores.profiles,
        ),
        journeys=JourneyReconstructor(ledger=ledger),
        settlement=FareSettlementEngine(
            profile_repository=stores.profiles,
            fare_config=build_fare_config(config),
            default_fare_per_km=config.fare_default_per_km,
            max_attempts=config.settlement_max_attempts,
        ),
        place_names=NominatimPlaceNameProvider(
            url=config.geocoder_url or "",
            timeout_s=config.geocoder_timeout_s,
            user_agent=config.geocoder_user_agent,
        ),
        deduplicator=stores.deduplicator,
        reconciliation=build_reconciliation_reporter(config),
    )


# Built once per process: the services hold the per-vehicle and per-rider
# locks, so every request must share the same instances.


@lru_cache(maxsize=1)
def get_config() -> FareServiceConfig:
    return FareServiceConfig.from_env()


@lru_cache(maxsize=1)
def get_stores() -> Stores:
    return build_stores(get_config())


@lru_cache(maxsize=1)
def get_fare_collection_service() -> FareCollectionService:
    return build_fare_collection_service(get_config(), get_stores())


def get_ledger_service() -> LocationLedgerService:
    return get_fare_collection_service().ledger


def get_profile_repository() -> IProfileRepository:
    return get_stores().profiles
