from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from src.app.ports.output import IQueueService, QueueMessage
from src.app.services.fare_collection_service import IngressKind, IngressOutcome, IngressStatus
from src.worker import handle_message, process_messages


@dataclass
class _FakeService:
    calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = field(default_factory=list)

    def on_location_sample(self, *args: Any, **kwargs: Any) -> IngressOutcome:
        self.calls.append(("location", args, kwargs))
        return IngressOutcome(IngressStatus.ACCEPTED, IngressKind.LOCATION)

    def on_card_scan(self, *args: Any, **kwargs: Any) -> IngressOutcome:
        self.calls.append(("scan", args, kwargs))
        return IngressOutcome(IngressStatus.ACCEPTED, IngressKind.ENTRY)


def test_location_message_is_forwarded() -> None:
    svc = _FakeService()
    outcome = handle_message(
        svc,
        {
            "type": "location",
            "vehicle_id": "bus-7",
            "lat": 12.0,
            "lon": 77.0,
            "observed_at": "2026-10-01T08:00:00",
        },
        default_vehicle_id="vehicle-1",
    )

    assert outcome.kind is IngressKind.LOCATION
    [(kind, args, kwargs)] = svc.calls
    assert kind == "location"
    assert args == ("bus-7", 12.0, 77.0)
    # Naive timestamps are taken as UTC.
    assert kwargs["observed_at"] == datetime(2026, 10, 1, 8, 0, tzinfo=timezone.utc)


def test_scan_message_uses_default_vehicle_and_epoch_millis() -> None:
    svc = _FakeService()
    handle_message(
        svc,
        {"type": "scan", "card_id": "c1", "observed_at": 1_790_000_000_000},
        default_vehicle_id="vehicle-1",
    )

    [(kind, args, kwargs)] = svc.calls
    assert kind == "scan"
    assert args == ("vehicle-1", "c1")
    assert kwargs["observed_at"] == datetime.fromtimestamp(1_790_000_000, tz=timezone.utc)


def test_unknown_message_type_is_skipped() -> None:
    svc = _FakeService()
    assert handle_message(svc, {"type": "tap"}, default_vehicle_id="vehicle-1") is None
    assert svc.calls == []


def test_bad_timestamp_is_skipped() -> None:
    svc = _FakeService()
    msg = {"type": "scan", "card_id": "c1", "observed_at": "yesterday"}
    assert handle_message(svc, msg, default_vehicle_id="vehicle-1") is None
    assert svc.calls == []


@dataclass
class _FakeQueue(IQueueService):
    acked: list[str | None] = field(default_factory=list)

    def publish(self, message: Any) -> str:
        raise AssertionError("worker never publishes")

    def consume(self, *, max_messages: int = 1, wait_time_s: int = 10) -> list[QueueMessage]:
        return []

    def ack(self, message: QueueMessage) -> None:
        self.acked.append(message.receipt)


class _ExplodingService(_FakeService):
    def on_card_scan(self, *args: Any, **kwargs: Any) -> IngressOutcome:
        raise RuntimeError("profile store offline")


def test_failed_messages_stay_on_the_queue() -> None:
    queue = _FakeQueue()
    messages = [
        QueueMessage(body={"type": "location", "lat": 1.0, "lon": 2.0}, receipt="m1"),
        QueueMessage(body={"type": "scan", "card_id": "c1"}, receipt="m2"),
        QueueMessage(body={"type": "tap"}, receipt="m3"),
    ]

    acked = process_messages(queue, _ExplodingService(), messages, default_vehicle_id="v")

    assert acked == 2
    assert queue.acked == ["m1", "m3"]
