from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone

import pytest

from src.adapters.persistence import (
    InMemoryBoardingRepository,
    InMemoryLocationLedgerRepository,
    InMemoryProfileRepository,
)
from src.app.services.boarding_service import BoardingStateMachine
from src.app.services.location_ledger_service import LocationLedgerService
from src.domain.exceptions.fares import BoardingConflict, NoLocationData
from src.domain.models import Account, BoardingRecord, BoardingState, EntryResult, ExitResult

T0 = datetime(2026, 10, 1, 8, 0, tzinfo=timezone.utc)


@dataclass
class Setup:
    ledger: LocationLedgerService
    boarding: InMemoryBoardingRepository
    profiles: InMemoryProfileRepository
    machine: BoardingStateMachine


def _setup(boarding=None, profiles=None) -> Setup:
    ledger = LocationLedgerService(repository=InMemoryLocationLedgerRepository())
    boarding_repo = boarding or InMemoryBoardingRepository()
    profile_repo = profiles or InMemoryProfileRepository()
    profile_repo.add_account(Account(rider_id="r1", card_id="c1", balance=500.0))
    machine = BoardingStateMachine(
        boarding_repository=boarding_repo, ledger=ledger, profile_repository=profile_repo
    )
    return Setup(ledger, boarding_repo, profile_repo, machine)


def test_scan_without_location_data_fails_and_leaves_no_record() -> None:
    s = _setup()

    with pytest.raises(NoLocationData):
        s.machine.handle_scan("r1", "bus-1", T0)

    assert s.boarding.get("r1") is None
    assert s.profiles.load_account("r1").on_journey is False


def test_first_scan_enters_at_latest_sample() -> None:
    s = _setup()
    s.ledger.append_sample("bus-1", 12.0, 77.0, T0)
    latest = s.ledger.append_sample("bus-1", 12.01, 77.0, T0)

    result = s.machine.handle_scan("r1", "bus-1", T0)

    assert isinstance(result, EntryResult)
    assert result.state is BoardingState.ON_BOARD
    assert result.entry_sequence_no == 2
    assert result.cumulative_distance_km == latest.cumulative_distance_km
    assert s.machine.is_on_board("r1")
    assert s.profiles.load_account("r1").on_journey is True


def test_second_scan_exits_with_stored_entry_pointer() -> None:
    s = _setup()
    s.ledger.append_sample("bus-1", 12.0, 77.0, T0)
    entry = s.machine.handle_scan("r1", "bus-1", T0)
    s.ledger.append_sample("bus-1", 12.01, 77.0, T0)

    result = s.machine.handle_scan("r1", "bus-1", T0)

    assert isinstance(result, ExitResult)
    assert result.state is BoardingState.OFF_BOARD
    assert result.vehicle_id == "bus-1"
    assert result.entry_sequence_no == entry.entry_sequence_no
    assert result.entered_at == T0
    assert not s.machine.is_on_board("r1")
    # Cleared by settlement, not by the exit itself.
    assert s.profiles.load_account("r1").on_journey is True


@dataclass
class RacingBoardingRepository(InMemoryBoardingRepository):
    """Another scan for the same rider boards them between our delete and create."""

    def delete_if_present(self, rider_id: str) -> BoardingRecord | None:
        found = InMemoryBoardingRepository.delete_if_present(self, rider_id)
        InMemoryBoardingRepository.create_if_absent(
            self,
            BoardingRecord(
                rider_id=rider_id,
                vehicle_id="bus-9",
                entry_sequence_no=7,
                entry_cumulative_distance_km=3.5,
                entered_at=T0,
            ),
        )
        return found


def test_concurrent_entry_loses_to_existing_record() -> None:
    s = _setup(boarding=RacingBoardingRepository())
    s.ledger.append_sample("bus-1", 12.0, 77.0, T0)

    with pytest.raises(BoardingConflict):
        s.machine.handle_scan("r1", "bus-1", T0)

    assert s.boarding.get("r1").vehicle_id == "bus-9"


@dataclass
class FailingSaveProfileRepository(InMemoryProfileRepository):
    def save_account(self, account: Account, *, expected_version: int) -> Account:
        raise RuntimeError("profile store offline")


def test_entry_is_rolled_back_when_account_cannot_be_flagged() -> None:
    s = _setup(profiles=FailingSaveProfileRepository())
    s.ledger.append_sample("bus-1", 12.0, 77.0, T0)

    with pytest.raises(RuntimeError):
        s.machine.handle_scan("r1", "bus-1", T0)

    assert s.boarding.get("r1") is None
    assert s.profiles.load_account("r1").on_journey is False


def test_concurrent_scans_for_one_rider_alternate() -> None:
    s = _setup()
    s.ledger.append_sample("bus-1", 12.0, 77.0, T0)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: s.machine.handle_scan("r1", "bus-1", T0), range(8)))

    entries = [r for r in results if isinstance(r, EntryResult)]
    exits = [r for r in results if isinstance(r, ExitResult)]
    assert len(entries) == len(exits) == 4
    assert s.boarding.get("r1") is None


def test_mark_off_journey_clears_only_the_flag() -> None:
    s = _setup()
    s.ledger.append_sample("bus-1", 12.0, 77.0, T0)
    s.machine.handle_scan("r1", "bus-1", T0)
    s.machine.handle_scan("r1", "bus-1", T0)

    s.machine.mark_off_journey("r1")

    account = s.profiles.load_account("r1")
    assert account.on_journey is False
    assert account.balance == 500.0


def test_mark_off_journey_keeps_a_reboarded_rider_on_journey() -> None:
    s = _setup()
    s.ledger.append_sample("bus-1", 12.0, 77.0, T0)
    s.machine.handle_scan("r1", "bus-1", T0)

    s.machine.mark_off_journey("r1")

    assert s.boarding.get("r1") is not None
    assert s.profiles.load_account("r1").on_journey is True
