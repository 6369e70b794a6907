"""Communication-age buckets for the "last seen" dashboard panel."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from fleet_alerts.timestamps import parse_timestamp_ms, resolve_now_ms

MS_PER_HOUR = 3_600_000


@dataclass(frozen=True)
class CommunicationBucket:
    key: str
    label: str
    max_hours: float


COMMUNICATION_BUCKETS: tuple[CommunicationBucket, ...] = (
    CommunicationBucket("0-1h", "Até 1 hora", 1),
    CommunicationBucket("1-6h", "1 a 6 horas", 6),
    CommunicationBucket("6-12h", "6 a 12 horas", 12),
    CommunicationBucket("12-24h", "12 a 24 horas", 24),
    CommunicationBucket("24-72h", "24 a 72 horas", 72),
    CommunicationBucket("72h-10d", "72 horas a 10 dias", 240),
    CommunicationBucket("10-30d", "10 a 30 dias", 720),
    CommunicationBucket("30d+", "Mais de 30 dias", math.inf),
)
STALE_BUCKET = COMMUNICATION_BUCKETS[-1]


@dataclass
class CommunicationGroup:
    bucket: CommunicationBucket
    items: list[Any] = field(default_factory=list)


def bucketize(timestamp: Any, now: Any = None) -> CommunicationBucket:
    timestamp_ms = parse_timestamp_ms(timestamp) if timestamp else None
    if timestamp_ms is None:
        return STALE_BUCKET
    diff_hours = max(0.0, (resolve_now_ms(now) - timestamp_ms) / MS_PER_HOUR)
    for bucket in COMMUNICATION_BUCKETS:
        if bucket.max_hours >= diff_hours:
            return bucket
    return STALE_BUCKET


def last_seen(device: Any) -> Any:
    if isinstance(device, Mapping):
        value = device.get("lastCommunication")
        return value if value is not None else device.get("lastUpdate")
    value = getattr(device, "lastCommunication", None)
    return value if value is not None else getattr(device, "lastUpdate", None)


def group_by_communication(devices: Iterable[Any] | None, now: Any = None) -> list[CommunicationGroup]:
    now_ms = resolve_now_ms(now)
    groups = {bucket.key: CommunicationGroup(bucket) for bucket in COMMUNICATION_BUCKETS}
    for device in devices or ():
        groups[bucketize(last_seen(device), now_ms).key].items.append(device)
    return list(groups.values())
