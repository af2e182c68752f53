import math
from typing import Optional

EARTH_RADIUS_KM = 6371.0


def has_coordinates(lat: Optional[float], lng: Optional[float]) -> bool:
    return lat is not None and lng is not None


def distance_km(
    lat1: Optional[float],
    lng1: Optional[float],
    lat2: Optional[float],
    lng2: Optional[float],
) -> float:
    """Great-circle distance in kilometers using the haversine formula.

    Returns 0.0 when either coordinate pair is incomplete. A zero result is
    therefore ambiguous: callers that can receive missing coordinates must
    check ``has_coordinates`` first and treat the distance as unknown.
    """
    if not (has_coordinates(lat1, lng1) and has_coordinates(lat2, lng2)):
        return 0.0
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c
