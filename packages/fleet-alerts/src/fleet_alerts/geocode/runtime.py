from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Response

from devkit.config import FleetSettings
from devkit.observability import configure_logging, configure_otel
from devkit.redis import (
    AsyncRedisManager,
    create_geocode_cache_store,
    create_geocode_job_store,
    create_redis_client,
)

from fleet_alerts.geocode.cache import GeocodeAddressCache
from fleet_alerts.geocode.metrics import GeocodeMetrics
from fleet_alerts.geocode.provider import ReverseGeocoderClient
from fleet_alerts.geocode.queue import GeocodeJobDeduplicator
from fleet_alerts.geocode.worker import GeocodeWorker, PositionAddressSink

logger = logging.getLogger(__name__)


def build_deduplicator(
    settings: FleetSettings,
    metrics: GeocodeMetrics | None = None,
    redis_client: AsyncRedisManager | None = None,
) -> GeocodeJobDeduplicator:
    client = redis_client or create_redis_client(settings.geocode_redis_url)
    return GeocodeJobDeduplicator(
        create_geocode_job_store(client),
        precision=settings.GEOCODE_GRID_PRECISION,
        metrics=metrics,
    )


def build_address_cache(
    settings: FleetSettings,
    redis_client: AsyncRedisManager | None = None,
) -> GeocodeAddressCache:
    client = redis_client or create_redis_client(settings.geocode_redis_url)
    return GeocodeAddressCache(create_geocode_cache_store(client), ttl_seconds=settings.GEOCODE_CACHE_TTL_SECONDS)


def build_geocoder(settings: FleetSettings) -> ReverseGeocoderClient:
    return ReverseGeocoderClient(
        settings.GEOCODER_BASE_URL,
        user_agent=settings.GEOCODER_USER_AGENT,
        timeout_seconds=settings.GEOCODER_TIMEOUT_SECONDS,
    )


def build_worker(
    settings: FleetSettings,
    sink: PositionAddressSink,
    *,
    deduplicator: GeocodeJobDeduplicator | None = None,
    cache: GeocodeAddressCache | None = None,
    metrics: GeocodeMetrics | None = None,
) -> GeocodeWorker:
    metrics = metrics or GeocodeMetrics()
    return GeocodeWorker(
        deduplicator or build_deduplicator(settings, metrics),
        build_geocoder(settings),
        sink,
        reuse_distance_meters=settings.GEOCODE_REUSE_DISTANCE_METERS,
        max_attempts=settings.GEOCODE_MAX_ATTEMPTS,
        retry_delay_seconds=settings.GEOCODE_RETRY_DELAY_SECONDS,
        cache=cache or build_address_cache(settings),
        metrics=metrics,
    )


def build_metrics_router(metrics: GeocodeMetrics) -> APIRouter:
    router = APIRouter(tags=["metrics"])

    @router.get("/metrics")
    async def geocode_metrics() -> Response:
        return Response(content=metrics.render(), media_type="text/plain; version=0.0.4")

    return router


async def run_worker(
    settings: FleetSettings,
    sink: PositionAddressSink,
    stop: asyncio.Event,
    metrics: GeocodeMetrics | None = None,
) -> None:
    """Process geocode jobs until ``stop`` is set, then release the redis connection.

    Pass ``metrics`` to share the counters with an app serving ``build_metrics_router``.
    """
    configure_logging()
    configure_otel(settings.SERVICE_NAME)
    redis_client = create_redis_client(settings.geocode_redis_url)
    metrics = metrics or GeocodeMetrics()
    worker = build_worker(
        settings,
        sink,
        deduplicator=build_deduplicator(settings, metrics, redis_client),
        cache=build_address_cache(settings, redis_client),
        metrics=metrics,
    )
    logger.info(
        "geocode_worker_started",
        extra={"component": "geocode", "store": "redis" if redis_client else "memory"},
    )
    try:
        await worker.run_forever(stop, settings.GEOCODE_POLL_INTERVAL_SECONDS)
    finally:
        if redis_client is not None:
            await redis_client.close()
        logger.info("geocode_worker_stopped", extra={"component": "geocode"})
