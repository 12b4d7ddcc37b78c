from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Mapping

from botocore.exceptions import ClientError

from src.adapters.aws import (
    CONDITIONAL_CHECK_FAILED,
    TRANSACTION_CANCELED,
    dynamodb_client,
    error_code,
)
from src.app.ports.output import IProfileRepository
from src.domain.exceptions.fares import AccountConflict
from src.domain.models import Account, GeoPoint, JourneyRecord


def _num(item: Mapping[str, Any], name: str, default: float = 0.0) -> float:
    raw = item.get(name, {}).get("N")
    return float(raw) if raw is not None else default


def _account_from_item(item: Mapping[str, Any]) -> Account:
    return Account(
        rider_id=item["rider_id"]["S"],
        card_id=item.get("card_id", {}).get("S"),
        balance=_num(item, "balance"),
        bonus=_num(item, "bonus"),
        total_spend_current_month=_num(item, "total_spend_current_month"),
        count_bonus=int(_num(item, "count_bonus")),
        last_reset_month=item.get("last_reset_month", {}).get("S"),
        on_journey=bool(item.get("on_journey", {}).get("BOOL", False)),
        version=int(_num(item, "version")),
    )


def _journey_to_item(journey: JourneyRecord) -> dict[str, Any]:
    item: dict[str, Any] = {
        "rider_id": {"S": journey.rider_id},
        "journey_key": {"S": f"{journey.exit_time.isoformat()}#{journey.journey_id}"},
        "journey_id": {"S": journey.journey_id},
        "entry_time": {"S": journey.entry_time.isoformat()},
        "exit_time": {"S": journey.exit_time.isoformat()},
        "entry_point": {"S": journey.entry_point_name},
        "exit_point": {"S": journey.exit_point_name},
        "distance_travelled_km": {"N": repr(journey.distance_travelled_km)},
        "fare": {"N": repr(journey.fare)},
        "fare_per_km": {"N": repr(journey.fare_per_km)},
        "total_time_minutes": {"N": repr(journey.total_time_minutes)},
        "path": {"S": json.dumps([p.as_dict() for p in journey.path])},
    }
    if journey.vehicle_id:
        item["vehicle_id"] = {"S": journey.vehicle_id}
    return item


def _journey_from_item(item: Mapping[str, Any]) -> JourneyRecord:
    raw_path = json.loads(item.get("path", {}).get("S", "[]"))
    return JourneyRecord(
        rider_id=item["rider_id"]["S"],
        journey_id=item["journey_id"]["S"],
        entry_time=datetime.fromisoformat(item["entry_time"]["S"]),
        exit_time=datetime.fromisoformat(item["exit_time"]["S"]),
        entry_point_name=item.get("entry_point", {}).get("S", "Unknown"),
        exit_point_name=item.get("exit_point", {}).get("S", "Unknown"),
        distance_travelled_km=_num(item, "distance_travelled_km"),
        fare=_num(item, "fare"),
        fare_per_km=_num(item, "fare_per_km"),
        total_time_minutes=_num(item, "total_time_minutes"),
        path=tuple(GeoPoint(lat=float(p["lat"]), lon=float(p["lon"])) for p in raw_path),
        vehicle_id=item.get("vehicle_id", {}).get("S"),
    )


@dataclass(slots=True)
class DynamoDbProfileRepository(IProfileRepository):
    """Rider accounts and journey history in DynamoDB.

    Only the fare-related attributes of an account are written; other profile
    attributes owned elsewhere are left untouched. Every write is conditional
    on the `version` attribute (a missing attribute counts as version 0).

    Env vars:
      - ACCOUNTS_TABLE (default: farebox-accounts), HASH rider_id
      - CARD_INDEX_NAME (default: card_id-index), GSI on card_id
      - JOURNEYS_TABLE (default: farebox-journeys), HASH rider_id, RANGE journey_key
    """

    accounts_table: str | None = None
    journeys_table: str | None = None
    card_index_name: str | None = None

    def _accounts(self) -> str:
        return self.accounts_table or os.getenv("ACCOUNTS_TABLE") or "farebox-accounts"

    def _journeys(self) -> str:
        return self.journeys_table or os.getenv("JOURNEYS_TABLE") or "farebox-journeys"

    def _card_index(self) -> str:
        return self.card_index_name or os.getenv("CARD_INDEX_NAME") or "card_id-index"

    def _account_update(self, account: Account, expected_version: int) -> dict[str, Any]:
        sets = [
            "balance = :balance",
            "bonus = :bonus",
            "total_spend_current_month = :spend",
            "count_bonus = :count_bonus",
            "on_journey = :on_journey",
            "#v = :next_version",
        ]
        values: dict[str, Any] = {
            ":balance": {"N": repr(account.balance)},
            ":bonus": {"N": repr(account.bonus)},
            ":spend": {"N": repr(account.total_spend_current_month)},
            ":count_bonus": {"N": str(account.count_bonus)},
            ":on_journey": {"BOOL": account.on_journey},
            ":next_version": {"N": str(expected_version + 1)},
        }
        if account.last_reset_month is not None:
            sets.append("last_reset_month = :month")
            values[":month"] = {"S": account.last_reset_month}

        if expected_version == 0:
            condition = "attribute_exists(rider_id) AND attribute_not_exists(#v)"
        else:
            condition = "#v = :expected_version"
            values[":expected_version"] = {"N": str(expected_version)}

        return {
            "TableName": self._accounts(),
            "Key": {"rider_id": {"S": account.rider_id}},
            "UpdateExpression": "SET " + ", ".join(sets),
            "ConditionExpression": condition,
            "ExpressionAttributeNames": {"#v": "version"},
            "ExpressionAttributeValues": values,
        }

    def find_by_card(self, card_id: str) -> Account | None:
        ddb = dynamodb_client()
        resp = ddb.query(
            TableName=self._accounts(),
            IndexName=self._card_index(),
            KeyConditionExpression="card_id = :c",
            ExpressionAttributeValues={":c": {"S": card_id}},
            Limit=1,
        )
        items = resp.get("Items") or []
        return _account_from_item(items[0]) if items else None

    def load_account(self, rider_id: str) -> Account | None:
        ddb = dynamodb_client()
        resp = ddb.get_item(
            TableName=self._accounts(),
            Key={"rider_id": {"S": rider_id}},
            ConsistentRead=True,
        )
        item = resp.get("Item")
        return _account_from_item(item) if item else None

    def save_account(self, account: Account, *, expected_version: int) -> Account:
        ddb = dynamodb_client()
        try:
            ddb.update_item(**self._account_update(account, expected_version))
        except ClientError as exc:
            if error_code(exc) == CONDITIONAL_CHECK_FAILED:
                raise AccountConflict(
                    f"Account {account.rider_id} changed since version {expected_version}"
                ) from exc
            raise
        return replace(account, version=expected_version + 1)

    def commit_settlement(
        self, account: Account, *, expected_version: int, journey: JourneyRecord
    ) -> Account:
        ddb = dynamodb_client()
        update = self._account_update(account, expected_version)
        try:
            ddb.transact_write_items(
                TransactItems=[
                    {
                        "Put": {
                            "TableName": self._journeys(),
                            "Item": _journey_to_item(journey),
                            "ConditionExpression": "attribute_not_exists(journey_key)",
                        }
                    },
                    {"Update": update},
                ]
            )
        except ClientError as exc:
            if error_code(exc) != TRANSACTION_CANCELED:
                raise
            reasons = exc.response.get("CancellationReasons") or []
            # Index 1 is the account update.
            if len(reasons) > 1 and reasons[1].get("Code") == "ConditionalCheckFailed":
                raise AccountConflict(
                    f"Account {account.rider_id} changed since version {expected_version}"
                ) from exc
            raise
        return replace(account, version=expected_version + 1)

    def list_journeys(self, rider_id: str) -> tuple[JourneyRecord, ...]:
        ddb = dynamodb_client()
        kwargs: dict[str, Any] = {
            "TableName": self._journeys(),
            "KeyConditionExpression": "rider_id = :r",
            "ExpressionAttributeValues": {":r": {"S": rider_id}},
            "ScanIndexForward": True,
        }

        out: list[JourneyRecord] = []
        while True:
            resp = ddb.query(**kwargs)
            out.extend(_journey_from_item(item) for item in resp.get("Items") or [])
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return tuple(out)
            kwargs["ExclusiveStartKey"] = last_key
