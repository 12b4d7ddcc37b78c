from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from botocore.exceptions import ClientError

from src.adapters.aws import CONDITIONAL_CHECK_FAILED, dynamodb_client, error_code
from src.app.ports.output import ILocationLedgerRepository
from src.domain.exceptions.fares import LedgerWriteConflict
from src.domain.models import LocationSample


def _to_item(sample: LocationSample) -> dict[str, Any]:
    return {
        "vehicle_id": {"S": sample.vehicle_id},
        "sequence_no": {"N": str(sample.sequence_no)},
        "lat": {"N": repr(sample.lat)},
        "lon": {"N": repr(sample.lon)},
        "captured_at": {"S": sample.captured_at.isoformat()},
        "distance_from_previous_km": {"N": repr(sample.distance_from_previous_km)},
        "cumulative_distance_km": {"N": repr(sample.cumulative_distance_km)},
    }


def _from_item(item: Mapping[str, Any]) -> LocationSample:
    return LocationSample(
        vehicle_id=item["vehicle_id"]["S"],
        sequence_no=int(item["sequence_no"]["N"]),
        lat=float(item["lat"]["N"]),
        lon=float(item["lon"]["N"]),
        captured_at=datetime.fromisoformat(item["captured_at"]["S"]),
        distance_from_previous_km=float(
            item.get("distance_from_previous_km", {}).get("N", "0")
        ),
        cumulative_distance_km=float(item.get("cumulative_distance_km", {}).get("N", "0")),
    )


@dataclass(slots=True)
class DynamoDbLocationLedgerRepository(ILocationLedgerRepository):
    """Location ledger in DynamoDB (HASH vehicle_id, RANGE sequence_no).

    The conditional put on the sequence number is what keeps concurrent
    writers in different processes from both claiming the same row.

    Env vars:
      - LEDGER_TABLE (default: farebox-location-ledger)
      - ENDPOINT_URL (preferred for LocalStack)
      - AWS_REGION
    """

    table_name: str | None = None

    def _table(self) -> str:
        return self.table_name or os.getenv("LEDGER_TABLE") or "farebox-location-ledger"

    def append(self, sample: LocationSample) -> int:
        ddb = dynamodb_client()
        try:
            ddb.put_item(
                TableName=self._table(),
                Item=_to_item(sample),
                ConditionExpression="attribute_not_exists(sequence_no)",
            )
        except ClientError as exc:
            if error_code(exc) == CONDITIONAL_CHECK_FAILED:
                raise LedgerWriteConflict(
                    f"{sample.vehicle_id} #{sample.sequence_no} already exists"
                ) from exc
            raise
        return sample.sequence_no

    def latest(self, vehicle_id: str) -> LocationSample | None:
        ddb = dynamodb_client()
        resp = ddb.query(
            TableName=self._table(),
            KeyConditionExpression="vehicle_id = :v",
            ExpressionAttributeValues={":v": {"S": vehicle_id}},
            ScanIndexForward=False,
            Limit=1,
            ConsistentRead=True,
        )
        items = resp.get("Items") or []
        return _from_item(items[0]) if items else None

    def get(self, vehicle_id: str, sequence_no: int) -> LocationSample | None:
        ddb = dynamodb_client()
        resp = ddb.get_item(
            TableName=self._table(),
            Key={"vehicle_id": {"S": vehicle_id}, "sequence_no": {"N": str(sequence_no)}},
            ConsistentRead=True,
        )
        item = resp.get("Item")
        return _from_item(item) if item else None

    def range(
        self, vehicle_id: str, first_sequence_no: int, last_sequence_no: int
    ) -> tuple[LocationSample, ...]:
        ddb = dynamodb_client()
        kwargs: dict[str, Any] = {
            "TableName": self._table(),
            "KeyConditionExpression": "vehicle_id = :v AND sequence_no BETWEEN :a AND :b",
            "ExpressionAttributeValues": {
                ":v": {"S": vehicle_id},
                ":a": {"N": str(first_sequence_no)},
                ":b": {"N": str(last_sequence_no)},
            },
            "ScanIndexForward": True,
            "ConsistentRead": True,
        }

        out: list[LocationSample] = []
        while True:
            resp = ddb.query(**kwargs)
            out.extend(_from_item(item) for item in resp.get("Items") or [])
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return tuple(out)
            kwargs["ExclusiveStartKey"] = last_key
