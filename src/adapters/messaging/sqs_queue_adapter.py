from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Mapping

from botocore.exceptions import ClientError

from src.adapters.aws import error_code, sqs_client
from src.app.ports.output import IQueueService, QueueMessage

logger = logging.getLogger(__name__)

_MISSING_QUEUE = {"AWS.SimpleQueueService.NonExistentQueue", "QueueDoesNotExist"}


def _decode(raw_body: str) -> Mapping[str, Any] | None:
    try:
        decoded = json.loads(raw_body)
    except json.JSONDecodeError:
        return None
    return decoded if isinstance(decoded, dict) else None


@dataclass(slots=True)
class SQSQueueAdapter(IQueueService):
    """SQS queue for ingress events or reconciliation reports.

    Received messages become visible again after the visibility timeout
    unless they are acked, so an event whose processing crashed is retried.

    Env vars:
      - `queue_url_env` names the variable holding the queue URL
        (INGRESS_QUEUE_URL or RECONCILIATION_QUEUE_URL)
      - SQS_VISIBILITY_TIMEOUT_S: how long a received message stays hidden
      - ENDPOINT_URL, USE_LOCALSTACK, AWS_REGION (see src.adapters.aws)
    """

    queue_url: str | None = None
    queue_url_env: str = "INGRESS_QUEUE_URL"
    visibility_timeout_s: int | None = None

    def _queue_url(self) -> str:
        value = self.queue_url or os.getenv(self.queue_url_env)
        if not value:
            raise RuntimeError(f"Missing {self.queue_url_env}")
        return value

    def publish(self, message: Mapping[str, Any]) -> str:
        resp = sqs_client().send_message(
            QueueUrl=self._queue_url(),
            MessageBody=json.dumps(dict(message), default=str),
        )
        return str(resp.get("MessageId", ""))

    def consume(self, *, max_messages: int = 1, wait_time_s: int = 10) -> list[QueueMessage]:
        kwargs: dict[str, Any] = {
            "QueueUrl": self._queue_url(),
            "MaxNumberOfMessages": max(1, min(10, int(max_messages))),
            "WaitTimeSeconds": max(0, min(20, int(wait_time_s))),
            "AttributeNames": ["ApproximateReceiveCount"],
        }
        visibility = self.visibility_timeout_s or os.getenv("SQS_VISIBILITY_TIMEOUT_S")
        if visibility:
            kwargs["VisibilityTimeout"] = int(visibility)

        try:
            resp = sqs_client().receive_message(**kwargs)
        except ClientError as exc:
            # The worker can start polling before the queue has been created.
            if error_code(exc) in _MISSING_QUEUE:
                logger.warning("Queue %s does not exist yet", kwargs["QueueUrl"])
                return []
            raise

        out: list[QueueMessage] = []
        for msg in resp.get("Messages") or []:
            receipt = msg.get("ReceiptHandle")
            body = _decode(msg.get("Body") or "")
            if body is None:
                # Poison message: it can never be processed, so drop it now.
                logger.warning("Discarding undecodable message %.200s", msg.get("Body"))
                if receipt:
                    self.ack(QueueMessage(body={}, receipt=receipt))
                continue
            out.append(
                QueueMessage(body=body, receipt=receipt, attributes=msg.get("Attributes") or {})
            )
        return out

    def ack(self, message: QueueMessage) -> None:
        if not message.receipt:
            return
        sqs_client().delete_message(QueueUrl=self._queue_url(), ReceiptHandle=message.receipt)
