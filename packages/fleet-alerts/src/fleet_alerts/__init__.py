"""Alerting and spatial aggregation utilities for fleet telemetry."""

from fleet_alerts.communication import (
    COMMUNICATION_BUCKETS,
    CommunicationBucket,
    CommunicationGroup,
    bucketize,
    group_by_communication,
)
from fleet_alerts.critical_vehicles import (
    AlertEvent,
    CriticalEventRef,
    CriticalVehicleAggregator,
    CriticalVehicleSummary,
    Severity,
    summarize,
)
from fleet_alerts.timestamps import parse_timestamp_ms, to_iso_millis

__all__ = [
    "AlertEvent",
    "COMMUNICATION_BUCKETS",
    "CommunicationBucket",
    "CommunicationGroup",
    "CriticalEventRef",
    "CriticalVehicleAggregator",
    "CriticalVehicleSummary",
    "Severity",
    "bucketize",
    "group_by_communication",
    "parse_timestamp_ms",
    "summarize",
    "to_iso_millis",
]
