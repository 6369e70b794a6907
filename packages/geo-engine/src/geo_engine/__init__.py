"""Geo engine core package."""

from geo_engine.distance import EARTH_RADIUS_METERS, distance_meters, haversine_distance_meters
from geo_engine.geofence import is_within_distance
from geo_engine.grid import DEFAULT_GRID_PRECISION, build_grid_key, round_coordinate
from geo_engine.models import GeoPoint, coerce_point

__all__ = [
    "DEFAULT_GRID_PRECISION",
    "EARTH_RADIUS_METERS",
    "GeoPoint",
    "build_grid_key",
    "coerce_point",
    "distance_meters",
    "haversine_distance_meters",
    "is_within_distance",
    "round_coordinate",
]
