from __future__ import annotations

from abc import ABC, abstractmethod


class IDeliveryDeduplicator(ABC):
    """Remembers which ingress observations were already processed."""

    @abstractmethod
    def first_delivery(self, key: str) -> bool:
        """Atomically mark `key` as seen. False if it was seen before."""

    @abstractmethod
    def release(self, key: str) -> None:
        """Forget `key` so a redelivery is processed again."""
