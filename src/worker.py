from __future__ import annotations

import logging
import os
import time
from datetime import datetime, timezone
from typing import Any, Mapping

from src.adapters.api.dependencies import build_fare_collection_service, build_stores
from src.adapters.messaging.sqs_queue_adapter import SQSQueueAdapter
from src.app.ports.output import IQueueService, QueueMessage
from src.app.services.fare_collection_service import (
    FareCollectionService,
    IngressOutcome,
)
from src.config import FareServiceConfig

logger = logging.getLogger(__name__)


def _observed_at(raw: Any) -> datetime:
    if isinstance(raw, str):
        parsed = datetime.fromisoformat(raw)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        # Epoch milliseconds.
        return datetime.fromtimestamp(raw / 1000.0, tz=timezone.utc)
    return datetime.now(timezone.utc)


def handle_message(
    service: FareCollectionService, msg: Mapping[str, Any], *, default_vehicle_id: str
) -> IngressOutcome | None:
    kind = str(msg.get("type") or "")
    vehicle_id = str(msg.get("vehicle_id") or default_vehicle_id)
    try:
        observed_at = _observed_at(msg.get("observed_at"))
    except (ValueError, OverflowError, OSError) as exc:
        logger.warning("Skipping %s message with bad observed_at: %s", kind or "untyped", exc)
        return None

    if kind == "location":
        return service.on_location_sample(
            vehicle_id, msg.get("lat"), msg.get("lon"), observed_at=observed_at
        )
    if kind == "scan":
        return service.on_card_scan(
            vehicle_id, str(msg.get("card_id") or ""), observed_at=observed_at
        )

    logger.warning("Skipping message of unknown type %r", kind)
    return None


def process_messages(
    queue: IQueueService,
    service: FareCollectionService,
    messages: list[QueueMessage],
    *,
    default_vehicle_id: str,
) -> int:
    """Handle a received batch and ack what was processed; returns the ack count."""

    acked = 0
    for msg in messages:
        try:
            outcome = handle_message(service, msg.body, default_vehicle_id=default_vehicle_id)
        except Exception:
            # Left unacked so SQS redelivers it after the visibility timeout.
            logger.exception(
                "Failed to process message %s (receive count %s)",
                dict(msg.body),
                msg.attributes.get("ApproximateReceiveCount"),
            )
            continue

        queue.ack(msg)
        acked += 1
        if outcome is not None:
            logger.info(
                "%s %s%s",
                outcome.kind.value,
                outcome.status.value,
                f" ({outcome.reason})" if outcome.reason else "",
            )
    return acked


def main() -> None:
    config = FareServiceConfig.from_env()
    config.configure_logging()

    queue = SQSQueueAdapter(queue_url=config.ingress_queue_url)
    service = build_fare_collection_service(config, build_stores(config))

    loop = os.getenv("WORKER_LOOP", "1").strip().lower() not in {"0", "false", "no"}

    while True:
        messages = queue.consume(max_messages=5, wait_time_s=10)
        if not messages:
            if not loop:
                return
            time.sleep(0.2)
            continue
        process_messages(queue, service, messages, default_vehicle_id=config.vehicle_id)


if __name__ == "__main__":
    main()
