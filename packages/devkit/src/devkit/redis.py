from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_seconds: float = 0.2
    max_delay_seconds: float = 2.0

    def backoff(self, attempt: int) -> float:
        return min(self.max_delay_seconds, self.base_delay_seconds * (2 ** (attempt - 1)))


class AsyncRedisManager:
    """Lazily connected redis client that reconnects and retries repeatable commands.

    Exposes the command subset used by the geocode job store so it can be
    handed to ``RedisGeocodeJobStore`` directly.
    """

    def __init__(
        self,
        url: str,
        *,
        retry: RetryPolicy | None = None,
        client_factory: Callable[[str], Any] | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._url = url
        self._retry = retry or RetryPolicy()
        self._client_factory = client_factory
        self._sleep_fn = sleep_fn
        self._client: Any | None = None
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> str | None:
        return await self.execute("get", key)

    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False) -> bool | None:
        # SET NX is not repeatable
        return await self.execute("set", key, value, ex=ex, nx=nx, retry=not nx)

    async def delete(self, *keys: str) -> int:
        return await self.execute("delete", *keys)

    async def rpush(self, key: str, *values: str) -> int:
        return await self.execute("rpush", key, *values, retry=False)

    async def lpush(self, key: str, *values: str) -> int:
        return await self.execute("lpush", key, *values, retry=False)

    async def lpop(self, key: str) -> str | None:
        return await self.execute("lpop", key, retry=False)

    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        return await self.execute("zadd", key, mapping)

    async def zrangebyscore(self, key: str, min: float | str, max: float | str) -> list[str]:
        return await self.execute("zrangebyscore", key, min, max)

    async def zrem(self, key: str, *members: str) -> int:
        return await self.execute("zrem", key, *members, retry=False)

    async def lock(
        self,
        name: str,
        *,
        timeout: float,
        sleep: float = 0.1,
        blocking_timeout: float | None = None,
    ) -> Any:
        """A ``redis.asyncio.lock.Lock`` bound to the current connection."""
        client = await self._connected()
        return client.lock(name, timeout=timeout, sleep=sleep, blocking_timeout=blocking_timeout)

    async def healthy(self) -> bool:
        try:
            client = await self._connected()
            return bool(await client.ping())
        except Exception:
            logger.warning("redis_unhealthy", extra={"component": "devkit"}, exc_info=True)
            return False

    async def execute(self, command: str, *args: Any, retry: bool = True, **kwargs: Any) -> Any:
        """Run ``command`` on the shared client, reconnecting after a failure.

        Only commands that are safe to repeat pass ``retry=True``; a pop or a
        push that failed mid-flight may already have been applied.
        """
        attempt = 0
        while True:
            client = await self._connected()
            try:
                return await getattr(client, command)(*args, **kwargs)
            except Exception:
                attempt += 1
                async with self._lock:
                    if self._client is client:
                        await self._discard()
                if not retry or attempt >= self._retry.max_attempts:
                    raise
                logger.warning(
                    "redis_command_retry",
                    extra={"component": "devkit", "command": command, "attempt": attempt},
                )
                await self._sleep_fn(self._retry.backoff(attempt))

    async def close(self) -> None:
        async with self._lock:
            if self._client is not None:
                try:
                    await self._client.aclose()
                finally:
                    self._client = None

    async def _connected(self) -> Any:
        async with self._lock:
            if self._client is None:
                client = self._open()
                await client.ping()
                self._client = client
            return self._client

    async def _discard(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.aclose()
        except Exception:
            logger.debug("redis_close_failed", extra={"component": "devkit"}, exc_info=True)

    def _open(self) -> Any:
        if self._client_factory is not None:
            return self._client_factory(self._url)
        import redis.asyncio as redis

        return redis.from_url(
            self._url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            health_check_interval=30,
        )


def create_redis_client(url: str | None, retry: RetryPolicy | None = None) -> AsyncRedisManager | None:
    if not url:
        return None
    return AsyncRedisManager(url, retry=retry)


def create_geocode_job_store(redis_client: Any | None):
    from fleet_alerts.geocode.queue import InMemoryGeocodeJobStore, RedisGeocodeJobStore

    if redis_client is None:
        return InMemoryGeocodeJobStore()
    return RedisGeocodeJobStore(redis_client)


def create_geocode_cache_store(redis_client: Any | None):
    from fleet_alerts.geocode.cache import InMemoryGeocodeCacheStore, RedisGeocodeCacheStore

    if redis_client is None:
        return InMemoryGeocodeCacheStore()
    return RedisGeocodeCacheStore(redis_client)
