from __future__ import annotations

import os
import time
from dataclasses import dataclass

from botocore.exceptions import ClientError

from src.adapters.aws import CONDITIONAL_CHECK_FAILED, dynamodb_client, error_code
from src.app.ports.output import IDeliveryDeduplicator


@dataclass(slots=True)
class DynamoDbDeliveryDeduplicator(IDeliveryDeduplicator):
    """Seen-delivery keys in DynamoDB (HASH delivery_key).

    Rows carry an `expires_at` epoch attribute meant for DynamoDB TTL.

    Env vars:
      - DEDUP_TABLE (default: farebox-deliveries)
      - DEDUP_TTL_S (default: 7 days)
    """

    table_name: str | None = None
    ttl_s: int | None = None

    def _table(self) -> str:
        return self.table_name or os.getenv("DEDUP_TABLE") or "farebox-deliveries"

    def _ttl_s(self) -> int:
        if self.ttl_s is not None:
            return self.ttl_s
        return int(os.getenv("DEDUP_TTL_S", str(7 * 24 * 3600)))

    def first_delivery(self, key: str) -> bool:
        ddb = dynamodb_client()
        now_s = int(time.time())
        try:
            ddb.put_item(
                TableName=self._table(),
                Item={
                    "delivery_key": {"S": key},
                    "seen_at": {"N": str(now_s)},
                    "expires_at": {"N": str(now_s + self._ttl_s())},
                },
                ConditionExpression="attribute_not_exists(delivery_key)",
            )
        except ClientError as exc:
            if error_code(exc) == CONDITIONAL_CHECK_FAILED:
                return False
            raise
        return True

    def release(self, key: str) -> None:
        ddb = dynamodb_client()
        ddb.delete_item(TableName=self._table(), Key={"delivery_key": {"S": key}})
