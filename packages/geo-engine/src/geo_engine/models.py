from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float


def coerce_point(value: Any) -> GeoPoint | None:
    """Build a GeoPoint from any coordinate-bearing mapping or object.

    ``lat``/``lng`` win over ``latitude``/``longitude``; a missing or
    non-numeric component reads as ``0``.
    """
    if value is None:
        return None
    if isinstance(value, GeoPoint):
        return value
    lat = _first_number(value, ("lat", "latitude"))
    lng = _first_number(value, ("lng", "longitude"))
    return GeoPoint(lat=lat, lng=lng)


def _first_number(value: Any, names: tuple[str, ...]) -> float:
    for name in names:
        raw = value.get(name) if isinstance(value, Mapping) else getattr(value, name, None)
        if raw is None:
            continue
        number = _to_float(raw)
        if number is not None:
            return number
    return 0.0


def _to_float(raw: Any) -> float | None:
    if isinstance(raw, bool):
        return None
    try:
        number = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number
