from __future__ import annotations

import logging
import os
from dataclasses import dataclass

DEFAULT_GEOCODER_URL = "https://nominatim.openstreetmap.org/reverse"


def _env_opt(name: str) -> str | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    return raw.strip() or None


def _env_str(name: str, default: str) -> str:
    return _env_opt(name) or default


def _env_float(name: str, default: float) -> float:
    raw = _env_opt(name)
    return float(raw) if raw is not None else default


def _env_int(name: str, default: int) -> int:
    raw = _env_opt(name)
    return int(raw) if raw is not None else default


@dataclass(frozen=True, slots=True)
class FareServiceConfig:
    """Process configuration, read from the environment.

    Env vars:
      - FAREBOX_STORE: "memory" (default) or "dynamodb"
      - VEHICLE_ID: vehicle served by this deployment (default vehicle-1)
      - LEDGER_TABLE, BOARDING_TABLE, ACCOUNTS_TABLE, JOURNEYS_TABLE,
        DEDUP_TABLE, FARE_CONFIG_TABLE, CARD_INDEX_NAME
      - FARE_PER_KM: static fare; when unset the fare config table is read
      - FARE_CONFIG_ID, FARE_DEFAULT_PER_KM
      - GEOCODER_URL (empty disables lookups), GEOCODER_TIMEOUT_S,
        GEOCODER_USER_AGENT
      - INGRESS_QUEUE_URL, RECONCILIATION_QUEUE_URL
      - LEDGER_MAX_ATTEMPTS, SETTLEMENT_MAX_ATTEMPTS
      - LOG_LEVEL
      - ACCOUNTS_SEED_PATH: CSV of accounts for the in-memory store
    """

    store: str = "memory"
    vehicle_id: str = "vehicle-1"
    ledger_table: str = "farebox-location-ledger"
    boarding_table: str = "farebox-boarding"
    accounts_table: str = "farebox-accounts"
    journeys_table: str = "farebox-journeys"
    dedup_table: str = "farebox-deliveries"
    fare_config_table: str = "farebox-fare-config"
    card_index_name: str = "card_id-index"
    fare_per_km: float | None = None
    fare_config_id: str = "default"
    fare_default_per_km: float = 0.0
    geocoder_url: str | None = DEFAULT_GEOCODER_URL
    geocoder_timeout_s: float = 3.0
    geocoder_user_agent: str = "farebox/0.1"
    ingress_queue_url: str | None = None
    reconciliation_queue_url: str | None = None
    ledger_max_attempts: int = 5
    settlement_max_attempts: int = 3
    log_level: str = "INFO"
    accounts_seed_path: str | None = None

    @staticmethod
    def from_env() -> "FareServiceConfig":
        d = FareServiceConfig()
        geocoder_url = os.getenv("GEOCODER_URL")
        fare_per_km = _env_opt("FARE_PER_KM")
        return FareServiceConfig(
            store=_env_str("FAREBOX_STORE", d.store).lower(),
            vehicle_id=_env_str("VEHICLE_ID", d.vehicle_id),
            ledger_table=_env_str("LEDGER_TABLE", d.ledger_table),
            boarding_table=_env_str("BOARDING_TABLE", d.boarding_table),
            accounts_table=_env_str("ACCOUNTS_TABLE", d.accounts_table),
            journeys_table=_env_str("JOURNEYS_TABLE", d.journeys_table),
            dedup_table=_env_str("DEDUP_TABLE", d.dedup_table),
            fare_config_table=_env_str("FARE_CONFIG_TABLE", d.fare_config_table),
            card_index_name=_env_str("CARD_INDEX_NAME", d.card_index_name),
            fare_per_km=float(fare_per_km) if fare_per_km is not None else None,
            fare_config_id=_env_str("FARE_CONFIG_ID", d.fare_config_id),
            fare_default_per_km=_env_float("FARE_DEFAULT_PER_KM", d.fare_default_per_km),
            # An explicitly empty GEOCODER_URL disables reverse geocoding.
            geocoder_url=(
                d.geocoder_url if geocoder_url is None else (geocoder_url.strip() or None)
            ),
            geocoder_timeout_s=_env_float("GEOCODER_TIMEOUT_S", d.geocoder_timeout_s),
            geocoder_user_agent=_env_str("GEOCODER_USER_AGENT", d.geocoder_user_agent),
            ingress_queue_url=_env_opt("INGRESS_QUEUE_URL"),
            reconciliation_queue_url=_env_opt("RECONCILIATION_QUEUE_URL"),
            ledger_max_attempts=_env_int("LEDGER_MAX_ATTEMPTS", d.ledger_max_attempts),
            settlement_max_attempts=_env_int(
                "SETTLEMENT_MAX_ATTEMPTS", d.settlement_max_attempts
            ),
            log_level=_env_str("LOG_LEVEL", d.log_level).upper(),
            accounts_seed_path=_env_opt("ACCOUNTS_SEED_PATH"),
        )

    def configure_logging(self) -> None:
        logging.basicConfig(
            level=self.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
