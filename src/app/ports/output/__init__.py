from .boarding_repository import IBoardingRepository
from .delivery_deduplicator import IDeliveryDeduplicator
from .fare_config_provider import IFareConfigProvider
from .location_ledger_repository import ILocationLedgerRepository
from .place_name_provider import UNKNOWN_PLACE, IPlaceNameProvider
from .profile_repository import IProfileRepository
from .queue_service import IQueueService, QueueMessage
from .reconciliation_reporter import IReconciliationReporter

__all__ = [
    "IBoardingRepository",
    "IDeliveryDeduplicator",
    "IFareConfigProvider",
    "ILocationLedgerRepository",
    "IPlaceNameProvider",
    "IProfileRepository",
    "IQueueService",
    "IReconciliationReporter",
    "QueueMessage",
    "UNKNOWN_PLACE",
]
