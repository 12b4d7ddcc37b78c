from __future__ import annotations

import os
from dataclasses import dataclass

from botocore.exceptions import BotoCoreError, ClientError

from src.adapters.aws import dynamodb_client
from src.app.ports.output import IFareConfigProvider
from src.domain.exceptions.fares import UpstreamUnavailable


@dataclass(frozen=True, slots=True)
class StaticFareConfigProvider(IFareConfigProvider):
    fare_per_km: float

    def current_fare_per_km(self) -> float:
        return self.fare_per_km


@dataclass(slots=True)
class DynamoDbFareConfigProvider(IFareConfigProvider):
    """Reads the fare per kilometre from a config item on every call.

    Env vars:
      - FARE_CONFIG_TABLE (default: farebox-fare-config), HASH config_id
      - FARE_CONFIG_ID (default: default); the item's `fare_per_km` attribute
    """

    table_name: str | None = None
    config_id: str | None = None

    def _table(self) -> str:
        return self.table_name or os.getenv("FARE_CONFIG_TABLE") or "farebox-fare-config"

    def _config_id(self) -> str:
        return self.config_id or os.getenv("FARE_CONFIG_ID") or "default"

    def current_fare_per_km(self) -> float:
        ddb = dynamodb_client()
        try:
            resp = ddb.get_item(
                TableName=self._table(),
                Key={"config_id": {"S": self._config_id()}},
                ConsistentRead=True,
            )
        except (BotoCoreError, ClientError) as exc:
            raise UpstreamUnavailable(f"Fare config lookup failed: {exc}") from exc

        raw = (resp.get("Item") or {}).get("fare_per_km", {}).get("N")
        if raw is None:
            raise UpstreamUnavailable(f"No fare_per_km in fare config {self._config_id()!r}")
        return float(raw)
