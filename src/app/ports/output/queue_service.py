from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class QueueMessage:
    """A received message; `receipt` is what `ack` needs to remove it."""

    body: Mapping[str, Any]
    receipt: str | None = None
    attributes: Mapping[str, str] = field(default_factory=dict)


class IQueueService(ABC):
    """Messaging port for ingress events and reconciliation reports."""

    @abstractmethod
    def publish(self, message: Mapping[str, Any]) -> str:
        """Publish a message and return its provider message id."""

    @abstractmethod
    def consume(self, *, max_messages: int = 1, wait_time_s: int = 10) -> list[QueueMessage]:
        """Receive up to N messages. They stay on the queue until acked."""

    @abstractmethod
    def ack(self, message: QueueMessage) -> None:
        """Remove a processed message from the queue."""
