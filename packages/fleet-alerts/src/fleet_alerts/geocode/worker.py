from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from opentelemetry import trace

from geo_engine.distance import distance_meters
from geo_engine.geofence import is_within_distance

from fleet_alerts.geocode.cache import CachedAddress, GeocodeAddressCache
from fleet_alerts.geocode.metrics import GeocodeMetrics
from fleet_alerts.geocode.provider import format_address
from fleet_alerts.geocode.queue import GeocodeJob, GeocodeJobDeduplicator

logger = logging.getLogger(__name__)

DEFAULT_REUSE_DISTANCE_METERS = 25.0
DEFAULT_MAX_ATTEMPTS = 2
DEFAULT_RETRY_DELAY_SECONDS = 3.0


@dataclass(frozen=True)
class ResolvedPosition:
    lat: float
    lng: float
    address: str
    provider: str | None = None


@dataclass(frozen=True)
class GeocodeOutcome:
    status: str
    grid_key: str
    device_id: str | None
    reason: str
    address: str | None = None
    distance_meters: float | None = None
    cached_at: str | None = None


class ReverseGeocoder(Protocol):
    @property
    def provider_name(self) -> str: ...

    async def reverse(self, lat: float, lng: float) -> dict[str, Any]: ...


class PositionAddressSink(Protocol):
    async def mark_pending(self, position_id: str, provider: str | None) -> None: ...

    async def save_address(self, position_id: str, address: str, provider: str | None) -> None: ...

    async def mark_failed(self, position_id: str, error: str) -> None: ...

    async def latest_resolved(self, device_id: str) -> ResolvedPosition | None: ...


class GeocodeWorker:
    """Resolves claimed jobs from the grid cache, a nearby address of the same device, or the geocoder."""

    def __init__(
        self,
        deduplicator: GeocodeJobDeduplicator,
        geocoder: ReverseGeocoder,
        sink: PositionAddressSink,
        *,
        reuse_distance_meters: float = DEFAULT_REUSE_DISTANCE_METERS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
        cache: GeocodeAddressCache | None = None,
        metrics: GeocodeMetrics | None = None,
    ) -> None:
        self._deduplicator = deduplicator
        self._geocoder = geocoder
        self._sink = sink
        self._reuse_distance_meters = reuse_distance_meters
        self._max_attempts = max(1, max_attempts)
        self._retry_delay_seconds = retry_delay_seconds
        self._cache = cache
        self._metrics = metrics
        self._tracer = trace.get_tracer("fleet-geocode-worker")

    async def run_once(self) -> GeocodeOutcome | None:
        job = await self._deduplicator.claim_next()
        if job is None:
            return None
        return await self.process(job)

    async def run_forever(self, stop: asyncio.Event, poll_interval_seconds: float = 1.0) -> None:
        while not stop.is_set():
            try:
                outcome = await self.run_once()
            except Exception:
                logger.exception("geocode_worker_iteration_failed", extra={"component": "geocode"})
                outcome = None
            if outcome is None:
                try:
                    await asyncio.wait_for(stop.wait(), timeout=poll_interval_seconds)
                except asyncio.TimeoutError:
                    pass

    async def process(self, job: GeocodeJob) -> GeocodeOutcome:
        with self._tracer.start_as_current_span("geocode.job") as span:
            span.set_attribute("geocode.grid_key", job.grid_key)
            span.set_attribute("geocode.positions", len(job.position_ids))
            span.set_attribute("geocode.attempt", job.attempts + 1)
            await self._mark_pending(job)
            try:
                outcome = await self._resolve(job)
            except Exception as exc:
                await self._handle_failure(job, exc)
                raise
            span.set_attribute("geocode.status", outcome.status)
        logger.info(
            f"geocode_{outcome.status}",
            extra={"component": "geocode", "grid_key": job.grid_key, "reason": job.reason},
        )
        self._observe(outcome.status)
        return outcome

    async def _handle_failure(self, job: GeocodeJob, exc: Exception) -> None:
        attempt = job.attempts + 1
        if attempt < self._max_attempts:
            try:
                await self._deduplicator.retry_later(job, self._retry_delay_seconds)
            except Exception:
                logger.exception(
                    "geocode_retry_unavailable",
                    extra={"component": "geocode", "grid_key": job.grid_key},
                )
            else:
                logger.warning(
                    "geocode_attempt_failed",
                    extra={
                        "component": "geocode",
                        "grid_key": job.grid_key,
                        "attempt": attempt,
                        "error": str(exc),
                    },
                )
                self._observe("retried")
                return
        await self._mark_failed(job, exc)
        logger.warning(
            "geocode_failed",
            extra={"component": "geocode", "grid_key": job.grid_key, "attempts": attempt, "error": str(exc)},
        )
        self._observe("failed")

    async def _resolve(self, job: GeocodeJob) -> GeocodeOutcome:
        cached = await self._from_cache(job)
        if cached is not None:
            return cached

        reused = await self._reuse_nearby(job)
        if reused is not None:
            return reused

        payload = await self._geocoder.reverse(job.lat, job.lng)
        address = format_address(payload)
        if address:
            await self._persist(job, address, self._geocoder.provider_name)
            await self._remember(job.grid_key, address)
        return GeocodeOutcome(
            status="resolved" if address else "empty",
            grid_key=job.grid_key,
            device_id=job.device_id,
            reason=job.reason,
            address=address,
        )

    async def _from_cache(self, job: GeocodeJob) -> GeocodeOutcome | None:
        if self._cache is None:
            return None
        entry = await self._cache.get(job.grid_key)
        if entry is None or not entry.address:
            return None
        if job.position_ids:
            await self._persist(job, entry.address, entry.provider or self._geocoder.provider_name)
            await self._count_hit(entry)
        return GeocodeOutcome(
            status="cached",
            grid_key=job.grid_key,
            device_id=job.device_id,
            reason=job.reason,
            address=entry.address,
            cached_at=entry.cached_at,
        )

    async def _remember(self, grid_key: str, address: str) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.put(grid_key, address, self._geocoder.provider_name)
        except Exception:
            logger.warning(
                "geocode_cache_write_failed",
                extra={"component": "geocode", "grid_key": grid_key},
                exc_info=True,
            )

    async def _count_hit(self, entry: CachedAddress) -> None:
        try:
            await self._cache.record_hit(entry)
        except Exception:
            logger.warning(
                "geocode_cache_hit_not_recorded",
                extra={"component": "geocode", "grid_key": entry.grid_key},
                exc_info=True,
            )

    async def _reuse_nearby(self, job: GeocodeJob) -> GeocodeOutcome | None:
        if not job.device_id or self._reuse_distance_meters <= 0:
            return None
        latest = await self._sink.latest_resolved(job.device_id)
        if latest is None or not latest.address:
            return None
        target = {"lat": job.lat, "lng": job.lng}
        if not is_within_distance(target, latest, self._reuse_distance_meters):
            return None
        distance = distance_meters(target, latest)
        await self._persist(job, latest.address, latest.provider or self._geocoder.provider_name)
        return GeocodeOutcome(
            status="reuse_distance",
            grid_key=job.grid_key,
            device_id=job.device_id,
            reason=job.reason,
            address=latest.address,
            distance_meters=distance,
        )

    async def _persist(self, job: GeocodeJob, address: str, provider: str | None) -> None:
        targets = sorted(job.position_ids)
        results = await asyncio.gather(
            *(self._sink.save_address(position_id, address, provider) for position_id in targets),
            return_exceptions=True,
        )
        for position_id, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(
                    "geocode_persist_failed",
                    extra={"component": "geocode", "position_id": position_id, "error": str(result)},
                )

    async def _mark_pending(self, job: GeocodeJob) -> None:
        provider = self._geocoder.provider_name
        targets = sorted(job.position_ids)
        results = await asyncio.gather(
            *(self._sink.mark_pending(position_id, provider) for position_id in targets),
            return_exceptions=True,
        )
        for position_id, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(
                    "geocode_mark_pending_error",
                    extra={"component": "geocode", "position_id": position_id, "error": str(result)},
                )

    async def _mark_failed(self, job: GeocodeJob, error: Exception) -> None:
        targets = sorted(job.position_ids)
        results = await asyncio.gather(
            *(self._sink.mark_failed(position_id, str(error)) for position_id in targets),
            return_exceptions=True,
        )
        for position_id, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(
                    "geocode_mark_failed_error",
                    extra={"component": "geocode", "position_id": position_id, "error": str(result)},
                )

    def _observe(self, status: str) -> None:
        if self._metrics:
            self._metrics.observe_processed(status)
