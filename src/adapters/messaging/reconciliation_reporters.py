from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from src.app.ports.output import IQueueService, IReconciliationReporter

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class QueueReconciliationReporter(IReconciliationReporter):
    """Publishes failed settlements to the reconciliation queue."""

    queue: IQueueService

    def report_failed_settlement(self, payload: Mapping[str, Any]) -> None:
        message_id = self.queue.publish(payload)
        logger.warning(
            "Failed settlement for rider %s queued for reconciliation (%s)",
            payload.get("rider_id"),
            message_id,
        )


@dataclass(slots=True)
class LogReconciliationReporter(IReconciliationReporter):
    """Fallback when no reconciliation queue is configured."""

    def report_failed_settlement(self, payload: Mapping[str, Any]) -> None:
        logger.error("Failed settlement needs manual reconciliation: %s", dict(payload))
