from __future__ import annotations

from abc import ABC, abstractmethod

UNKNOWN_PLACE = "Unknown"


class IPlaceNameProvider(ABC):
    """Port for reverse geocoding. Implementations never raise."""

    @abstractmethod
    def reverse_geocode(self, lat: float, lon: float) -> str:
        """Return a human-readable place name, or UNKNOWN_PLACE."""
