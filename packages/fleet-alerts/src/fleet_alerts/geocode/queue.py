"""Reverse-geocode job queue keyed by spatial grid cell.

Positions whose coordinates round to the same cell share one pending job, so
a cluster of positions costs a single reverse-geocode call. Enqueues for a cell
read and rewrite its job while holding that cell's store lock; without it two
concurrent enqueues could each miss the other's position id.

A failed job waits in a delayed set until its retry is due and is then pushed
back onto the pending list by the next ``claim_next``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any, Protocol

from redis.exceptions import LockError

from geo_engine.grid import DEFAULT_GRID_PRECISION, build_grid_key, round_coordinate

from fleet_alerts.geocode.errors import GeocodeLockTimeout
from fleet_alerts.geocode.metrics import GeocodeMetrics

logger = logging.getLogger(__name__)

DEFAULT_REASON = "warm_fill"
_PENDING_KEY = "geocode_jobs:pending"
_DELAYED_KEY = "geocode_jobs:delayed"
PRIORITY_RANK = {"high": 1, "normal": 5}


class JobStatus(StrEnum):
    PENDING = "pending"


def normalize_priority(priority: str | None) -> str:
    return priority if priority in PRIORITY_RANK else "normal"


def _optional_id(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


@dataclass
class GeocodeJob:
    grid_key: str
    lat: float
    lng: float
    position_id: str | None = None
    position_ids: set[str] = field(default_factory=set)
    reason: str = DEFAULT_REASON
    device_id: str | None = None
    priority: str = "normal"
    status: str = JobStatus.PENDING
    attempts: int = 0

    @property
    def is_pending(self) -> bool:
        return self.status == JobStatus.PENDING

    def copy(self) -> GeocodeJob:
        return replace(self, position_ids=set(self.position_ids))

    def to_dict(self) -> dict[str, Any]:
        return {
            "gridKey": self.grid_key,
            "lat": self.lat,
            "lng": self.lng,
            "positionId": self.position_id,
            "positionIds": sorted(self.position_ids),
            "reason": self.reason,
            "deviceId": self.device_id,
            "priority": self.priority,
            "status": str(self.status),
            "attempts": self.attempts,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> GeocodeJob:
        return cls(
            grid_key=str(payload["gridKey"]),
            lat=float(payload["lat"]),
            lng=float(payload["lng"]),
            position_id=_optional_id(payload.get("positionId")),
            position_ids={str(item) for item in payload.get("positionIds") or [] if item is not None},
            reason=str(payload.get("reason") or DEFAULT_REASON),
            device_id=_optional_id(payload.get("deviceId")),
            priority=normalize_priority(payload.get("priority")),
            status=str(payload.get("status") or JobStatus.PENDING),
            attempts=int(payload.get("attempts") or 0),
        )


class GeocodeJobStore(ABC):
    @abstractmethod
    async def get_job(self, grid_key: str) -> GeocodeJob | None:
        raise NotImplementedError

    @abstractmethod
    async def create_job(self, job: GeocodeJob) -> None:
        raise NotImplementedError

    @abstractmethod
    async def update_job(self, job: GeocodeJob) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete_job(self, grid_key: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def pop_pending_key(self) -> str | None:
        raise NotImplementedError

    @abstractmethod
    async def requeue_key(self, grid_key: str, *, front: bool = True) -> None:
        raise NotImplementedError

    @abstractmethod
    async def schedule_retry(self, grid_key: str, due_at: float) -> None:
        raise NotImplementedError

    @abstractmethod
    async def pop_due_retries(self, now: float) -> list[str]:
        """Remove and return the delayed keys due at ``now``, oldest first."""
        raise NotImplementedError

    @abstractmethod
    def lock(self, grid_key: str):
        """Async context manager holding the grid cell exclusively."""
        raise NotImplementedError


class InMemoryGeocodeJobStore(GeocodeJobStore):
    def __init__(self) -> None:
        self._jobs: dict[str, GeocodeJob] = {}
        self._pending: deque[str] = deque()
        self._delayed: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_holders: dict[str, int] = defaultdict(int)

    async def get_job(self, grid_key: str) -> GeocodeJob | None:
        job = self._jobs.get(grid_key)
        return job.copy() if job else None

    async def create_job(self, job: GeocodeJob) -> None:
        self._jobs[job.grid_key] = job.copy()
        await self.requeue_key(job.grid_key, front=job.priority == "high")

    async def update_job(self, job: GeocodeJob) -> None:
        self._jobs[job.grid_key] = job.copy()

    async def delete_job(self, grid_key: str) -> None:
        self._jobs.pop(grid_key, None)

    async def pop_pending_key(self) -> str | None:
        if not self._pending:
            return None
        return self._pending.popleft()

    async def requeue_key(self, grid_key: str, *, front: bool = True) -> None:
        if front:
            self._pending.appendleft(grid_key)
        else:
            self._pending.append(grid_key)

    async def schedule_retry(self, grid_key: str, due_at: float) -> None:
        self._delayed[grid_key] = due_at

    async def pop_due_retries(self, now: float) -> list[str]:
        due = sorted((due_at, grid_key) for grid_key, due_at in self._delayed.items() if due_at <= now)
        for _, grid_key in due:
            del self._delayed[grid_key]
        return [grid_key for _, grid_key in due]

    @asynccontextmanager
    async def lock(self, grid_key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(grid_key, asyncio.Lock())
        self._lock_holders[grid_key] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_holders[grid_key] -= 1
            if not self._lock_holders[grid_key]:
                del self._lock_holders[grid_key]
                self._locks.pop(grid_key, None)

    def __len__(self) -> int:
        return len(self._jobs)


class RedisLikeJobClient(Protocol):
    """Command subset of ``devkit.redis.AsyncRedisManager`` used by the job store."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False) -> bool | None: ...

    async def delete(self, *keys: str) -> int: ...

    async def rpush(self, key: str, *values: str) -> int: ...

    async def lpush(self, key: str, *values: str) -> int: ...

    async def lpop(self, key: str) -> str | None: ...

    async def zadd(self, key: str, mapping: dict[str, float]) -> int: ...

    async def zrangebyscore(self, key: str, min: float | str, max: float | str) -> list[str]: ...

    async def zrem(self, key: str, *members: str) -> int: ...

    async def lock(self, name: str, *, timeout: float, sleep: float, blocking_timeout: float) -> Any: ...


class RedisGeocodeJobStore(GeocodeJobStore):
    def __init__(
        self,
        client: RedisLikeJobClient,
        *,
        job_ttl_seconds: int = 24 * 60 * 60,
        lock_ttl_seconds: int = 10,
        lock_timeout_seconds: float = 5.0,
        lock_retry_seconds: float = 0.05,
    ) -> None:
        self._client = client
        self._job_ttl_seconds = job_ttl_seconds
        self._lock_ttl_seconds = lock_ttl_seconds
        self._lock_timeout_seconds = lock_timeout_seconds
        self._lock_retry_seconds = lock_retry_seconds

    async def get_job(self, grid_key: str) -> GeocodeJob | None:
        raw = await self._client.get(self._job_key(grid_key))
        if not raw:
            return None
        return GeocodeJob.from_dict(json.loads(raw))

    async def create_job(self, job: GeocodeJob) -> None:
        await self._write(job)
        await self.requeue_key(job.grid_key, front=job.priority == "high")

    async def update_job(self, job: GeocodeJob) -> None:
        await self._write(job)

    async def delete_job(self, grid_key: str) -> None:
        await self._client.delete(self._job_key(grid_key))

    async def pop_pending_key(self) -> str | None:
        return await self._client.lpop(_PENDING_KEY)

    async def requeue_key(self, grid_key: str, *, front: bool = True) -> None:
        if front:
            await self._client.lpush(_PENDING_KEY, grid_key)
        else:
            await self._client.rpush(_PENDING_KEY, grid_key)

    async def schedule_retry(self, grid_key: str, due_at: float) -> None:
        await self._client.zadd(_DELAYED_KEY, {grid_key: due_at})

    async def pop_due_retries(self, now: float) -> list[str]:
        claimed: list[str] = []
        for grid_key in await self._client.zrangebyscore(_DELAYED_KEY, "-inf", now):
            # zrem decides which worker owns a due key
            if await self._client.zrem(_DELAYED_KEY, grid_key):
                claimed.append(grid_key)
        return claimed

    @asynccontextmanager
    async def lock(self, grid_key: str) -> AsyncIterator[None]:
        lock = await self._client.lock(
            f"geocode_job_lock:{grid_key}",
            timeout=self._lock_ttl_seconds,
            sleep=self._lock_retry_seconds,
            blocking_timeout=self._lock_timeout_seconds,
        )
        if not await lock.acquire():
            raise GeocodeLockTimeout(f"could not lock grid cell {grid_key}")
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                logger.warning(
                    "geocode_lock_expired",
                    extra={"component": "geocode", "grid_key": grid_key},
                )

    async def _write(self, job: GeocodeJob) -> None:
        payload = json.dumps(job.to_dict(), ensure_ascii=True)
        await self._client.set(self._job_key(job.grid_key), payload, ex=self._job_ttl_seconds)

    def _job_key(self, grid_key: str) -> str:
        return f"geocode_job:{grid_key}"


class GeocodeJobDeduplicator:
    def __init__(
        self,
        store: GeocodeJobStore,
        precision: int = DEFAULT_GRID_PRECISION,
        metrics: GeocodeMetrics | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._precision = precision
        self._metrics = metrics
        self._clock = clock

    def build_grid_key(self, lat: Any, lng: Any) -> str | None:
        return build_grid_key(lat, lng, self._precision)

    async def enqueue(
        self,
        position_id: Any,
        lat: Any,
        lng: Any,
        reason: str = DEFAULT_REASON,
        *,
        device_id: Any = None,
        priority: str = "normal",
    ) -> GeocodeJob | None:
        grid_key = self.build_grid_key(lat, lng)
        if grid_key is None:
            logger.warning(
                "geocode_enqueue_skipped",
                extra={"component": "geocode", "position_id": position_id, "reason": "invalid_coordinates"},
            )
            self._observe("skipped")
            return None

        incoming_id = _optional_id(position_id)
        priority = normalize_priority(priority)
        async with self._store.lock(grid_key):
            existing = await self._store.get_job(grid_key)
            if existing is not None and existing.is_pending:
                if incoming_id is not None:
                    existing.position_ids.add(incoming_id)
                existing.position_id = incoming_id
                existing.reason = reason
                if existing.device_id is None:
                    existing.device_id = _optional_id(device_id)
                if PRIORITY_RANK[priority] < PRIORITY_RANK[existing.priority]:
                    existing.priority = priority
                await self._store.update_job(existing)
                logger.info(
                    "geocode_job_merged",
                    extra={
                        "component": "geocode",
                        "grid_key": grid_key,
                        "position_id": incoming_id,
                        "merged_count": len(existing.position_ids),
                    },
                )
                self._observe("merged")
                return existing

            job = GeocodeJob(
                grid_key=grid_key,
                lat=round_coordinate(lat, self._precision),
                lng=round_coordinate(lng, self._precision),
                position_id=incoming_id,
                position_ids={incoming_id} if incoming_id is not None else set(),
                reason=reason,
                device_id=_optional_id(device_id),
                priority=priority,
            )
            await self._store.create_job(job)
            logger.info(
                "geocode_job_created",
                extra={"component": "geocode", "grid_key": grid_key, "position_id": incoming_id},
            )
            self._observe("created")
            return job

    async def claim_next(self) -> GeocodeJob | None:
        await self._promote_due_retries()
        while True:
            grid_key = await self._store.pop_pending_key()
            if grid_key is None:
                return None
            try:
                async with self._store.lock(grid_key):
                    job = await self._store.get_job(grid_key)
                    if job is None:
                        continue
                    await self._store.delete_job(grid_key)
                    return job
            except Exception:
                await self._restore_pending(grid_key)
                raise

    async def retry_later(self, job: GeocodeJob, delay_seconds: float) -> GeocodeJob:
        """Put a failed job back for another attempt after ``delay_seconds``.

        Positions enqueued for the cell since the claim already sit in a new
        pending job; the failed ids join it and run with that job instead.
        """
        async with self._store.lock(job.grid_key):
            existing = await self._store.get_job(job.grid_key)
            if existing is not None and existing.is_pending:
                existing.position_ids.update(job.position_ids)
                if existing.device_id is None:
                    existing.device_id = job.device_id
                await self._store.update_job(existing)
                logger.info(
                    "geocode_retry_merged",
                    extra={"component": "geocode", "grid_key": job.grid_key, "attempts": job.attempts + 1},
                )
                return existing

            retry = replace(job.copy(), status=JobStatus.PENDING, attempts=job.attempts + 1)
            await self._store.update_job(retry)
            await self._store.schedule_retry(job.grid_key, self._clock() + delay_seconds)
            logger.info(
                "geocode_retry_scheduled",
                extra={
                    "component": "geocode",
                    "grid_key": job.grid_key,
                    "attempts": retry.attempts,
                    "delay_seconds": delay_seconds,
                },
            )
            return retry

    async def _promote_due_retries(self) -> None:
        for grid_key in await self._store.pop_due_retries(self._clock()):
            try:
                await self._store.requeue_key(grid_key, front=False)
            except Exception:
                await self._store.schedule_retry(grid_key, self._clock())
                raise

    async def _restore_pending(self, grid_key: str) -> None:
        try:
            await self._store.requeue_key(grid_key)
        except Exception:
            logger.warning(
                "geocode_requeue_failed",
                extra={"component": "geocode", "grid_key": grid_key},
                exc_info=True,
            )

    def _observe(self, outcome: str) -> None:
        if self._metrics:
            self._metrics.observe_enqueue(outcome)
