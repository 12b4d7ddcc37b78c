from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0
DISTANCE_PRECISION = 8


def haversine_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres.

    NaN inputs propagate to the result; validation happens upstream.
    """

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    s = (
        math.sin(dlat / 2.0) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(dlon / 2.0) ** 2
    )
    return 2.0 * EARTH_RADIUS_KM * math.atan2(math.sqrt(s), math.sqrt(1.0 - s))


def round_km(value: float) -> float:
    return round(float(value), DISTANCE_PRECISION)
