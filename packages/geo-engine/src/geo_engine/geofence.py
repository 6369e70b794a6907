from typing import Any

from geo_engine.distance import distance_meters


def is_within_distance(start: Any, end: Any, max_meters: float) -> bool:
    return distance_meters(start, end) <= max_meters
