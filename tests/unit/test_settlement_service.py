from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest

from src.adapters.fares.fare_config_providers import StaticFareConfigProvider
from src.adapters.persistence import InMemoryProfileRepository
from src.app.ports.output import IFareConfigProvider
from src.app.services.settlement_service import FareSettlementEngine
from src.domain.exceptions.fares import AccountConflict, SettlementFailed, UpstreamUnavailable
from src.domain.models import Account, GeoPoint, JourneyRecord

ENTRY = datetime(2026, 10, 1, 8, 0, tzinfo=timezone.utc)
EXIT = ENTRY + timedelta(minutes=25)
PATH = (GeoPoint(lat=12.0, lon=77.0), GeoPoint(lat=12.1, lon=77.0))


def _profiles(**account) -> InMemoryProfileRepository:
    repo = InMemoryProfileRepository()
    defaults = {"rider_id": "r1", "card_id": "c1", "balance": 500.0, "last_reset_month": "2026-10"}
    defaults.update(account)
    repo.add_account(Account(**defaults))
    return repo


def _settle(engine: FareSettlementEngine, distance: float = 12.0, exit_time=EXIT):
    return engine.settle("r1", distance, ENTRY, exit_time, "Depot", "Market", PATH)


def test_settles_fare_and_records_journey() -> None:
    profiles = _profiles(on_journey=True)
    engine = FareSettlementEngine(profiles, StaticFareConfigProvider(10.0))

    journey = _settle(engine)

    assert journey.fare == 120.0
    assert journey.fare_per_km == 10.0
    assert journey.total_time_minutes == 25.0
    assert journey.entry_point_name == "Depot"
    assert journey.exit_point_name == "Market"
    assert journey.path == PATH

    account = profiles.load_account("r1")
    assert account.balance == 380.0
    assert account.bonus == 0.0
    assert account.total_spend_current_month == 120.0
    assert account.on_journey is False
    assert profiles.list_journeys("r1") == (journey,)


def test_zero_distance_ride_is_free() -> None:
    profiles = _profiles()
    journey = _settle(FareSettlementEngine(profiles, StaticFareConfigProvider(10.0)), 0.0)

    assert journey.fare == 0.0
    assert profiles.load_account("r1").balance == 500.0


def test_monthly_reset_uses_exit_month() -> None:
    profiles = _profiles(
        bonus=50.0, total_spend_current_month=1200.0, count_bonus=1, last_reset_month="2026-9"
    )
    engine = FareSettlementEngine(profiles, StaticFareConfigProvider(1.0))

    _settle(engine, 10.0)

    account = profiles.load_account("r1")
    assert account.last_reset_month == "2026-10"
    assert account.total_spend_current_month == 10.0
    assert account.bonus == 0.0
    assert account.balance == 490.0


@dataclass
class FlakyFareConfig(IFareConfigProvider):
    values: list

    def current_fare_per_km(self) -> float:
        value = self.values.pop(0)
        if isinstance(value, Exception):
            raise value
        return value


def test_fare_config_falls_back_to_default_then_last_known() -> None:
    config = FlakyFareConfig([UpstreamUnavailable("down"), 8.0, UpstreamUnavailable("down")])
    engine = FareSettlementEngine(_profiles(), config, default_fare_per_km=2.5)

    assert engine.current_fare_per_km() == 2.5
    assert engine.current_fare_per_km() == 8.0
    assert engine.current_fare_per_km() == 8.0


@dataclass
class ConflictingProfileRepository(InMemoryProfileRepository):
    conflicts: int = 0

    def commit_settlement(
        self, account: Account, *, expected_version: int, journey: JourneyRecord
    ) -> Account:
        if self.conflicts > 0:
            self.conflicts -= 1
            raise AccountConflict("changed")
        return InMemoryProfileRepository.commit_settlement(
            self, account, expected_version=expected_version, journey=journey
        )


def _conflicting(conflicts: int) -> ConflictingProfileRepository:
    repo = ConflictingProfileRepository(conflicts=conflicts)
    repo.add_account(Account(rider_id="r1", balance=500.0, last_reset_month="2026-10"))
    return repo


def test_account_conflict_is_retried() -> None:
    profiles = _conflicting(2)
    engine = FareSettlementEngine(profiles, StaticFareConfigProvider(10.0), max_attempts=3)

    _settle(engine)

    assert profiles.load_account("r1").balance == 380.0
    assert len(profiles.list_journeys("r1")) == 1


def test_exhausted_retries_leave_account_untouched() -> None:
    profiles = _conflicting(5)
    engine = FareSettlementEngine(profiles, StaticFareConfigProvider(10.0), max_attempts=3)

    with pytest.raises(SettlementFailed):
        _settle(engine)

    assert profiles.load_account("r1").balance == 500.0
    assert profiles.list_journeys("r1") == ()


def test_unknown_rider_fails_settlement() -> None:
    engine = FareSettlementEngine(InMemoryProfileRepository(), StaticFareConfigProvider(10.0))
    with pytest.raises(SettlementFailed):
        _settle(engine)


def test_concurrent_settlements_are_serialized() -> None:
    profiles = _profiles()
    engine = FareSettlementEngine(profiles, StaticFareConfigProvider(1.0))

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda _: _settle(engine, 10.0), range(20)))

    account = profiles.load_account("r1")
    assert account.balance == 300.0
    assert account.total_spend_current_month == 200.0
    assert len(profiles.list_journeys("r1")) == 20
