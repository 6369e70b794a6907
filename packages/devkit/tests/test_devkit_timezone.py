from datetime import timezone

from devkit.timezone import now_in_zone, resolve_zone, utc_now_ms


def test_resolve_zone_defaults_to_sao_paulo() -> None:
    assert resolve_zone().key == "America/Sao_Paulo"
    assert resolve_zone("UTC").key == "UTC"


def test_now_in_zone_is_aware() -> None:
    now = now_in_zone(resolve_zone("UTC"))
    assert now.tzinfo is not None
    assert now.utcoffset() == timezone.utc.utcoffset(None)


def test_utc_now_ms_is_epoch_millis() -> None:
    assert utc_now_ms() > 1_700_000_000_000
