from __future__ import annotations

import math
from typing import Any

DEFAULT_GRID_PRECISION = 5


def round_coordinate(value: Any, precision: int = DEFAULT_GRID_PRECISION) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    # -0.0 and 0.0 share a cell
    return round(number, precision) + 0.0


def build_grid_key(lat: Any, lng: Any, precision: int = DEFAULT_GRID_PRECISION) -> str | None:
    if precision < 0:
        raise ValueError("precision must be >= 0")
    rounded_lat = round_coordinate(lat, precision)
    rounded_lng = round_coordinate(lng, precision)
    if rounded_lat is None or rounded_lng is None:
        return None
    return f"{_format(rounded_lat, precision)},{_format(rounded_lng, precision)}"


def _format(value: float, precision: int) -> str:
    text = f"{value:.{precision}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text == "-0" else text
