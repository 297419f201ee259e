from __future__ import annotations

import math

from .records import Point

EARTH_RADIUS_KM = 6371.0088


def haversine_km(origin: Point, destination: Point) -> float:
    """Great-circle distance between two points, in kilometres."""
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(destination.latitude)
    dlat = lat2 - lat1
    dlng = math.radians(destination.longitude - origin.longitude)
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))
