"""Common runtime devkit for service infrastructure concerns."""

from devkit.config import FleetSettings, load_settings
from devkit.observability import OnceLogger, configure_logging, configure_otel
from devkit.redis import (
    AsyncRedisManager,
    RetryPolicy,
    create_geocode_cache_store,
    create_geocode_job_store,
    create_redis_client,
)
from devkit.timezone import now_in_zone, resolve_zone, utc_now_ms

__all__ = [
    "AsyncRedisManager",
    "FleetSettings",
    "OnceLogger",
    "RetryPolicy",
    "configure_logging",
    "configure_otel",
    "create_geocode_cache_store",
    "create_geocode_job_store",
    "create_redis_client",
    "load_settings",
    "now_in_zone",
    "resolve_zone",
    "utc_now_ms",
]
