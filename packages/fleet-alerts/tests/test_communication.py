from datetime import datetime, timezone

import pytest

from fleet_alerts.communication import (
    COMMUNICATION_BUCKETS,
    bucketize,
    group_by_communication,
)

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
NOW_MS = NOW.timestamp() * 1000
HOUR_MS = 60 * 60 * 1000


def _ago(hours: float) -> str:
    return datetime.fromtimestamp((NOW_MS - hours * HOUR_MS) / 1000, tz=timezone.utc).isoformat()


def test_catalog_is_ordered_and_unbounded() -> None:
    ceilings = [bucket.max_hours for bucket in COMMUNICATION_BUCKETS]
    assert len(COMMUNICATION_BUCKETS) == 8
    assert ceilings == sorted(ceilings)
    assert len(set(ceilings)) == len(ceilings)
    assert COMMUNICATION_BUCKETS[-1].key == "30d+"
    assert COMMUNICATION_BUCKETS[-1].max_hours == float("inf")


@pytest.mark.parametrize(
    "hours,key",
    [
        (0.5, "0-1h"),
        (1, "0-1h"),
        (5, "1-6h"),
        (7, "6-12h"),
        (12, "6-12h"),
        (20, "12-24h"),
        (48, "24-72h"),
        (5 * 24, "72h-10d"),
        (15 * 24, "10-30d"),
        (40 * 24, "30d+"),
    ],
)
def test_bucketize_by_age(hours: float, key: str) -> None:
    assert bucketize(NOW_MS - hours * HOUR_MS, now=NOW_MS).key == key


def test_future_timestamps_land_in_first_bucket() -> None:
    assert bucketize(NOW_MS + HOUR_MS, now=NOW_MS).key == "0-1h"


@pytest.mark.parametrize("value", [None, "", 0, "garbage"])
def test_missing_timestamp_is_stale(value) -> None:
    assert bucketize(value, now=NOW_MS).key == "30d+"


def test_bucketize_accepts_datetime_now() -> None:
    assert bucketize(_ago(3), now=NOW).key == "1-6h"


def test_group_by_communication_scenario() -> None:
    devices = [
        {"id": "1", "lastUpdate": _ago(0.5)},
        {"id": "2", "lastUpdate": _ago(7)},
        {"id": "3"},
    ]

    groups = group_by_communication(devices, now=NOW)
    by_key = {group.bucket.key: [item["id"] for item in group.items] for group in groups}

    assert by_key["0-1h"] == ["1"]
    assert by_key["6-12h"] == ["2"]
    assert by_key["30d+"] == ["3"]


def test_last_communication_wins_over_last_update() -> None:
    device = {"lastCommunication": _ago(0.2), "lastUpdate": _ago(100)}
    groups = group_by_communication([device], now=NOW)
    assert groups[0].items == [device]


def test_group_by_communication_always_returns_every_bucket() -> None:
    assert [group.bucket for group in group_by_communication([], now=NOW)] == list(COMMUNICATION_BUCKETS)
    assert len(group_by_communication(None, now=NOW)) == 8


def test_group_items_keep_input_order() -> None:
    devices = [{"id": str(index), "lastUpdate": _ago(2 + index / 10)} for index in range(5)]
    groups = group_by_communication(devices, now=NOW)
    assert [item["id"] for item in groups[1].items] == ["0", "1", "2", "3", "4"]


def test_group_by_communication_reads_object_attributes() -> None:
    class Device:
        def __init__(self, last_update: str) -> None:
            self.lastUpdate = last_update

    device = Device(_ago(13))
    groups = group_by_communication([device], now=NOW)
    assert groups[3].items == [device]
