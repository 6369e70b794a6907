"""Critical-vehicle aggregation.

Surfaces vehicles that raised at least ``min_events`` unresolved critical
events inside a trailing window ending at ``now``. The window's lower bound is
inclusive. Summaries are ordered newest first; vehicles sharing the same
``last_event_at`` are ordered by ``vehicle_id`` ascending.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from devkit.config import FleetSettings

from fleet_alerts.timestamps import parse_timestamp_ms, resolve_now_ms, to_iso_millis

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MS = 3 * 60 * 60 * 1000
DEFAULT_MIN_EVENTS = 2

_TIME_FIELDS = ("eventTime", "time", "createdAt")
_TYPE_FIELDS = ("type", "event")


class Severity(StrEnum):
    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def parse(cls, value: Any) -> Severity | None:
        if value is None:
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class AlertEvent:
    id: Any = None
    vehicle_id: str | None = None
    severity: Severity | None = None
    occurred_at_ms: float | None = None
    type: str | None = None
    resolved: bool = False

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> AlertEvent:
        vehicle_id = payload.get("vehicleId")
        return cls(
            id=payload.get("id"),
            vehicle_id=str(vehicle_id) if vehicle_id else None,
            severity=Severity.parse(payload.get("severity")),
            occurred_at_ms=parse_timestamp_ms(_first_present(payload, _TIME_FIELDS)),
            type=_first_present(payload, _TYPE_FIELDS),
            resolved=bool(payload.get("resolved")),
        )


@dataclass(frozen=True)
class CriticalEventRef:
    id: Any
    type: str | None
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "type": self.type, "createdAt": self.created_at}


@dataclass(frozen=True)
class CriticalVehicleSummary:
    vehicle_id: str
    count: int
    last_event_at: str | None
    events: list[CriticalEventRef] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "vehicleId": self.vehicle_id,
            "count": self.count,
            "lastEventAt": self.last_event_at,
            "events": [event.to_dict() for event in self.events],
        }


def summarize(
    events: Iterable[AlertEvent | Mapping[str, Any]] | None,
    *,
    window_ms: float = DEFAULT_WINDOW_MS,
    min_events: int = DEFAULT_MIN_EVENTS,
    now: Any = None,
    include_resolved: bool = False,
) -> list[CriticalVehicleSummary]:
    cutoff = resolve_now_ms(now) - window_ms
    by_vehicle: dict[str, list[tuple[float, AlertEvent]]] = defaultdict(list)
    skipped = 0

    for raw in events or ():
        event = raw if isinstance(raw, AlertEvent) else _coerce_event(raw)
        if event is None or not event.vehicle_id:
            skipped += 1
            continue
        if event.resolved and not include_resolved:
            continue
        if event.severity is not Severity.CRITICAL:
            continue
        occurred = parse_timestamp_ms(event.occurred_at_ms)
        if occurred is None:
            skipped += 1
            continue
        if occurred < cutoff:
            continue
        by_vehicle[str(event.vehicle_id)].append((occurred, event))

    if skipped:
        logger.debug(
            "critical_events_skipped",
            extra={"component": "fleet_alerts", "skipped": skipped},
        )

    summaries: list[CriticalVehicleSummary] = []
    for vehicle_id, entries in by_vehicle.items():
        if len(entries) < min_events:
            continue
        ordered = sorted(entries, key=lambda entry: entry[0], reverse=True)
        summaries.append(
            CriticalVehicleSummary(
                vehicle_id=vehicle_id,
                count=len(ordered),
                last_event_at=to_iso_millis(ordered[0][0]),
                events=[
                    CriticalEventRef(id=item.id, type=item.type, created_at=to_iso_millis(occurred))
                    for occurred, item in ordered
                ],
            )
        )

    summaries.sort(key=lambda item: item.vehicle_id)
    summaries.sort(key=_last_event_sort_key, reverse=True)
    return summaries


def _last_event_sort_key(summary: CriticalVehicleSummary) -> float:
    return parse_timestamp_ms(summary.last_event_at) or 0.0


def _coerce_event(raw: Any) -> AlertEvent | None:
    if not isinstance(raw, Mapping):
        return None
    return AlertEvent.from_mapping(raw)


def _first_present(payload: Mapping[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        value = payload.get(name)
        if value is not None:
            return value
    return None


class CriticalVehicleAggregator:
    """``summarize`` bound to a configured window and threshold."""

    def __init__(self, window_ms: float = DEFAULT_WINDOW_MS, min_events: int = DEFAULT_MIN_EVENTS) -> None:
        self.window_ms = window_ms
        self.min_events = min_events

    @classmethod
    def from_settings(cls, settings: FleetSettings) -> CriticalVehicleAggregator:
        return cls(window_ms=settings.CRITICAL_WINDOW_MS, min_events=settings.CRITICAL_MIN_EVENTS)

    def summarize(
        self,
        events: Iterable[AlertEvent | Mapping[str, Any]] | None,
        now: Any = None,
        include_resolved: bool = False,
    ) -> list[CriticalVehicleSummary]:
        return summarize(
            events,
            window_ms=self.window_ms,
            min_events=self.min_events,
            now=now,
            include_resolved=include_resolved,
        )
