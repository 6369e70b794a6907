"""Grid-deduplicated reverse geocoding."""

from fleet_alerts.geocode.cache import (
    CachedAddress,
    GeocodeAddressCache,
    InMemoryGeocodeCacheStore,
    RedisGeocodeCacheStore,
)
from fleet_alerts.geocode.errors import GeocodeError, GeocodeLockTimeout, GeocodeProviderError
from fleet_alerts.geocode.metrics import GeocodeMetrics
from fleet_alerts.geocode.provider import ReverseGeocoderClient, format_address
from fleet_alerts.geocode.queue import (
    GeocodeJob,
    GeocodeJobDeduplicator,
    GeocodeJobStore,
    InMemoryGeocodeJobStore,
    RedisGeocodeJobStore,
)
from fleet_alerts.geocode.worker import GeocodeOutcome, GeocodeWorker, ResolvedPosition

__all__ = [
    "CachedAddress",
    "GeocodeAddressCache",
    "GeocodeError",
    "GeocodeJob",
    "GeocodeJobDeduplicator",
    "GeocodeJobStore",
    "GeocodeLockTimeout",
    "GeocodeMetrics",
    "GeocodeOutcome",
    "GeocodeProviderError",
    "GeocodeWorker",
    "InMemoryGeocodeCacheStore",
    "InMemoryGeocodeJobStore",
    "RedisGeocodeCacheStore",
    "RedisGeocodeJobStore",
    "ResolvedPosition",
    "ReverseGeocoderClient",
    "format_address",
]
