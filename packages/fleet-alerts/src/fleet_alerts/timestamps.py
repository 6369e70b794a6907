from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any

from devkit.timezone import utc_now_ms


def parse_timestamp_ms(value: Any) -> float | None:
    """Epoch milliseconds for a timestamp-like value, ``None`` when it cannot be read.

    Accepts epoch milliseconds, ISO-8601 strings and datetimes. Strings and
    datetimes without an offset are read as UTC. Numbers outside the range a
    UTC ``datetime`` can hold are rejected.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        if not math.isfinite(number) or _to_utc(number) is None:
            return None
        return number
    if isinstance(value, datetime):
        return _datetime_ms(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return _datetime_ms(parsed)
    return None


def resolve_now_ms(now: Any = None) -> float:
    if now is None:
        return utc_now_ms()
    parsed = parse_timestamp_ms(now)
    if parsed is None:
        raise ValueError(f"invalid reference time: {now!r}")
    return parsed


def to_iso_millis(timestamp_ms: float) -> str:
    moment = _to_utc(timestamp_ms)
    if moment is None:
        raise ValueError(f"timestamp out of range: {timestamp_ms!r}")
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _to_utc(timestamp_ms: float) -> datetime | None:
    try:
        return datetime.fromtimestamp(timestamp_ms / 1000.0, tz=timezone.utc)
    except (OverflowError, ValueError, OSError):
        return None


def _datetime_ms(value: datetime) -> float | None:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    try:
        return value.timestamp() * 1000.0
    except (OverflowError, ValueError):
        return None
