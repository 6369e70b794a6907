from devkit.config import load_settings


def test_load_settings_reads_env(monkeypatch) -> None:
    monkeypatch.setenv("REDIS_URL", "redis://example:6379/0")
    monkeypatch.setenv("GEOCODE_GRID_PRECISION", "4")
    monkeypatch.setenv("ACCESS_TIMEZONE", "UTC")
    settings = load_settings("geocode-worker")

    assert settings.SERVICE_NAME == "geocode-worker"
    assert settings.REDIS_URL == "redis://example:6379/0"
    assert settings.GEOCODE_GRID_PRECISION == 4
    assert settings.ACCESS_TIMEZONE == "UTC"


def test_geocode_redis_url_falls_back_to_redis_url(monkeypatch) -> None:
    monkeypatch.delenv("GEOCODE_REDIS_URL", raising=False)
    monkeypatch.setenv("REDIS_URL", "redis://shared:6379/0")
    assert load_settings("api").geocode_redis_url == "redis://shared:6379/0"

    monkeypatch.setenv("GEOCODE_REDIS_URL", "redis://geocode:6379/1")
    assert load_settings("api").geocode_redis_url == "redis://geocode:6379/1"


def test_defaults_without_env(monkeypatch) -> None:
    for name in ("REDIS_URL", "GEOCODE_REDIS_URL", "CRITICAL_WINDOW_MS", "CRITICAL_MIN_EVENTS"):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings("api")

    assert settings.geocode_redis_url is None
    assert settings.CRITICAL_WINDOW_MS == 10_800_000
    assert settings.CRITICAL_MIN_EVENTS == 2
