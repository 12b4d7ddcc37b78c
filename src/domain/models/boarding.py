from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class BoardingState(str, Enum):
    OFF_BOARD = "off_board"
    ON_BOARD = "on_board"


@dataclass(frozen=True, slots=True)
class ScanEvent:
    vehicle_id: str
    card_id: str
    observed_at: datetime


@dataclass(frozen=True, slots=True)
class BoardingRecord:
    """Marker that a rider is between entry and exit.

    Holds the ledger pointer and the cumulative distance snapshot taken at
    entry, plus the entry time needed to settle the ride.
    """

    rider_id: str
    vehicle_id: str
    entry_sequence_no: int
    entry_cumulative_distance_km: float
    entered_at: datetime


@dataclass(frozen=True, slots=True)
class EntryResult:
    rider_id: str
    entry_sequence_no: int
    cumulative_distance_km: float
    entered_at: datetime

    @property
    def state(self) -> BoardingState:
        return BoardingState.ON_BOARD


@dataclass(frozen=True, slots=True)
class ExitResult:
    rider_id: str
    vehicle_id: str
    entry_sequence_no: int
    entry_cumulative_distance_km: float
    entered_at: datetime

    @property
    def state(self) -> BoardingState:
        return BoardingState.OFF_BOARD
