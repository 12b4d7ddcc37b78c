from __future__ import annotations

from abc import ABC, abstractmethod


class IFareConfigProvider(ABC):
    """Port for the fare per kilometre currently in effect."""

    @abstractmethod
    def current_fare_per_km(self) -> float:
        """May raise UpstreamUnavailable."""
