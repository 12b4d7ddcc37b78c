from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from botocore.exceptions import ClientError

from src.adapters.aws import CONDITIONAL_CHECK_FAILED, dynamodb_client, error_code
from src.app.ports.output import IBoardingRepository
from src.domain.models import BoardingRecord


def _from_item(item: Mapping[str, Any]) -> BoardingRecord:
    return BoardingRecord(
        rider_id=item["rider_id"]["S"],
        vehicle_id=item["vehicle_id"]["S"],
        entry_sequence_no=int(item["entry_sequence_no"]["N"]),
        entry_cumulative_distance_km=float(item["entry_cumulative_distance_km"]["N"]),
        entered_at=datetime.fromisoformat(item["entered_at"]["S"]),
    )


@dataclass(slots=True)
class DynamoDbBoardingRepository(IBoardingRepository):
    """Boarding markers keyed by rider_id.

    Env vars:
      - BOARDING_TABLE (default: farebox-boarding)
    """

    table_name: str | None = None

    def _table(self) -> str:
        return self.table_name or os.getenv("BOARDING_TABLE") or "farebox-boarding"

    def get(self, rider_id: str) -> BoardingRecord | None:
        ddb = dynamodb_client()
        resp = ddb.get_item(
            TableName=self._table(),
            Key={"rider_id": {"S": rider_id}},
            ConsistentRead=True,
        )
        item = resp.get("Item")
        return _from_item(item) if item else None

    def create_if_absent(self, record: BoardingRecord) -> bool:
        ddb = dynamodb_client()
        try:
            ddb.put_item(
                TableName=self._table(),
                Item={
                    "rider_id": {"S": record.rider_id},
                    "vehicle_id": {"S": record.vehicle_id},
                    "entry_sequence_no": {"N": str(record.entry_sequence_no)},
                    "entry_cumulative_distance_km": {
                        "N": repr(record.entry_cumulative_distance_km)
                    },
                    "entered_at": {"S": record.entered_at.isoformat()},
                },
                ConditionExpression="attribute_not_exists(rider_id)",
            )
        except ClientError as exc:
            if error_code(exc) == CONDITIONAL_CHECK_FAILED:
                return False
            raise
        return True

    def delete_if_present(self, rider_id: str) -> BoardingRecord | None:
        ddb = dynamodb_client()
        resp = ddb.delete_item(
            TableName=self._table(),
            Key={"rider_id": {"S": rider_id}},
            ReturnValues="ALL_OLD",
        )
        item = resp.get("Attributes")
        return _from_item(item) if item else None
