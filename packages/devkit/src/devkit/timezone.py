from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

DEFAULT_ZONE_NAME = "America/Sao_Paulo"


def resolve_zone(name: str | None = None) -> ZoneInfo:
    return ZoneInfo(name or DEFAULT_ZONE_NAME)


def now_in_zone(zone: ZoneInfo | None = None) -> datetime:
    return datetime.now(zone or resolve_zone())


def utc_now_ms() -> float:
    return datetime.now(timezone.utc).timestamp() * 1000.0
