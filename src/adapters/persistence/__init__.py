from .dynamodb_boarding_repository import DynamoDbBoardingRepository
from .dynamodb_delivery_deduplicator import DynamoDbDeliveryDeduplicator
from .dynamodb_location_ledger_repository import DynamoDbLocationLedgerRepository
from .dynamodb_profile_repository import DynamoDbProfileRepository
from .in_memory_repositories import (
    InMemoryBoardingRepository,
    InMemoryDeliveryDeduplicator,
    InMemoryLocationLedgerRepository,
    InMemoryProfileRepository,
)

__all__ = [
    "DynamoDbBoardingRepository",
    "DynamoDbDeliveryDeduplicator",
    "DynamoDbLocationLedgerRepository",
    "DynamoDbProfileRepository",
    "InMemoryBoardingRepository",
    "InMemoryDeliveryDeduplicator",
    "InMemoryLocationLedgerRepository",
    "InMemoryProfileRepository",
]
