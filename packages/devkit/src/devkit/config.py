from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class FleetSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    SERVICE_NAME: str = "fleet-monitor"
    REDIS_URL: str | None = None
    GEOCODE_REDIS_URL: str | None = None
    GEOCODE_GRID_PRECISION: int = 5
    GEOCODE_REUSE_DISTANCE_METERS: float = 25.0
    GEOCODE_POLL_INTERVAL_SECONDS: float = 1.0
    GEOCODE_MAX_ATTEMPTS: int = 2
    GEOCODE_RETRY_DELAY_SECONDS: float = 3.0
    GEOCODE_CACHE_TTL_SECONDS: int = 30 * 24 * 60 * 60
    GEOCODER_BASE_URL: str = "https://nominatim.openstreetmap.org"
    GEOCODER_USER_AGENT: str = "fleet-monitor-geocode-worker"
    GEOCODER_TIMEOUT_SECONDS: float = 5.0
    ACCESS_TIMEZONE: str = "America/Sao_Paulo"
    CRITICAL_WINDOW_MS: int = 3 * 60 * 60 * 1000
    CRITICAL_MIN_EVENTS: int = 2

    @property
    def geocode_redis_url(self) -> str | None:
        return self.GEOCODE_REDIS_URL or self.REDIS_URL


def load_settings(service_name: str) -> FleetSettings:
    return FleetSettings(SERVICE_NAME=service_name)
