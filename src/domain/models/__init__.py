from .account import Account
from .boarding import (
    BoardingRecord,
    BoardingState,
    EntryResult,
    ExitResult,
    ScanEvent,
)
from .geo import GeoPoint
from .journey import JourneyPath, JourneyRecord
from .ledger import LocationSample

__all__ = [
    "Account",
    "BoardingRecord",
    "BoardingState",
    "EntryResult",
    "ExitResult",
    "GeoPoint",
    "JourneyPath",
    "JourneyRecord",
    "LocationSample",
    "ScanEvent",
]
