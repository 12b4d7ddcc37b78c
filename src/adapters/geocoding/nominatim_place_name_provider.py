from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass, field

import httpx

from src.app.ports.output import UNKNOWN_PLACE, IPlaceNameProvider

logger = logging.getLogger(__name__)

# ~11 m; nearby samples share a cache entry.
_CACHE_PRECISION = 4


@dataclass(slots=True)
class NominatimPlaceNameProvider(IPlaceNameProvider):
    """Reverse geocoding against a Nominatim-compatible `/reverse` endpoint.

    Env vars:
      - GEOCODER_URL: reverse endpoint (empty disables lookups)
      - GEOCODER_TIMEOUT_S: request timeout (default 3)
      - GEOCODER_USER_AGENT: sent as User-Agent (Nominatim requires one)
      - GEOCODER_CACHE_TTL_S: in-process cache TTL seconds (default 3600)

    Notes:
      - Lookups are best-effort: any failure returns "Unknown".
      - Cache is per-process and shared across requests.
    """

    url: str | None = None
    timeout_s: float = 3.0
    user_agent: str = "farebox/0.1"
    cache_ttl_s: float = 3600.0
    transport: httpx.BaseTransport | None = None

    # In-process cache
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _cache: dict[tuple[float, float], tuple[float, str]] = field(
        default_factory=dict, init=False, repr=False
    )

    def __post_init__(self) -> None:
        if self.url is None:
            self.url = os.getenv("GEOCODER_URL")
        if os.getenv("GEOCODER_TIMEOUT_S"):
            self.timeout_s = float(os.environ["GEOCODER_TIMEOUT_S"])
        if os.getenv("GEOCODER_USER_AGENT"):
            self.user_agent = os.environ["GEOCODER_USER_AGENT"]
        if os.getenv("GEOCODER_CACHE_TTL_S"):
            self.cache_ttl_s = float(os.environ["GEOCODER_CACHE_TTL_S"])

    def reverse_geocode(self, lat: float, lon: float) -> str:
        if not self.url:
            return UNKNOWN_PLACE

        key = (round(lat, _CACHE_PRECISION), round(lon, _CACHE_PRECISION))
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None and (time.monotonic() - cached[0]) < self.cache_ttl_s:
            return cached[1]

        try:
            with httpx.Client(
                timeout=self.timeout_s, transport=self.transport
            ) as client:
                resp = client.get(
                    self.url,
                    params={"lat": lat, "lon": lon, "format": "json"},
                    headers={"User-Agent": self.user_agent},
                )
                resp.raise_for_status()
                payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Reverse geocoding (%s, %s) failed: %s", lat, lon, exc)
            return UNKNOWN_PLACE

        name = payload.get("display_name") if isinstance(payload, dict) else None
        if not name:
            return UNKNOWN_PLACE

        with self._lock:
            self._cache[key] = (time.monotonic(), str(name))
        return str(name)
