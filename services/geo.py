"""
Geospatial helpers.
Great-circle distances between WGS84 lat/lng points, used to check how far a
disposal photo was taken from the dustbin it claims to have been emptied into.
"""

import math
from typing import Optional

# Earth radius in meters
EARTH_RADIUS_M = 6_371_000


def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Haversine distance in meters between two points given in degrees.

    Args:
        lat1: Latitude of the first point
        lon1: Longitude of the first point
        lat2: Latitude of the second point
        lon2: Longitude of the second point

    Returns:
        Distance along the Earth's surface in meters
    """
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def distance_between(a: Optional[dict], b: Optional[dict]) -> Optional[float]:
    """
    Distance between two {"lat", "lng"} mappings, or None if either point is
    missing or not numeric.
    """
    if not a or not b:
        return None
    coords = (a.get("lat"), a.get("lng"), b.get("lat"), b.get("lng"))
    if not all(isinstance(c, (int, float)) and not isinstance(c, bool) for c in coords):
        return None
    return distance_meters(*coords)
