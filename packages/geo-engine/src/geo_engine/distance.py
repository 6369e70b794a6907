import math
from typing import Any

from geo_engine.models import GeoPoint, coerce_point

EARTH_RADIUS_METERS = 6_371_000


def haversine_distance_meters(start: GeoPoint, end: GeoPoint) -> float:
    start_lat = math.radians(start.lat)
    end_lat = math.radians(end.lat)
    delta_lat = math.radians(end.lat - start.lat)
    delta_lng = math.radians(end.lng - start.lng)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(start_lat) * math.cos(end_lat) * math.sin(delta_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def distance_meters(start: Any, end: Any) -> float:
    """Distance between two loosely shaped coordinates; ``0.0`` when either is missing."""
    start_point = coerce_point(start)
    end_point = coerce_point(end)
    if start_point is None or end_point is None:
        return 0.0
    return haversine_distance_meters(start_point, end_point)
