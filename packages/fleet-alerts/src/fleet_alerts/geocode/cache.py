"""Resolved addresses cached per grid cell, so a revisited cell skips the geocoder."""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Protocol

DEFAULT_CACHE_TTL_SECONDS = 30 * 24 * 60 * 60


@dataclass(frozen=True)
class CachedAddress:
    grid_key: str
    address: str
    provider: str | None = None
    cached_at: str | None = None
    hits: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "gridKey": self.grid_key,
            "address": self.address,
            "provider": self.provider,
            "cachedAt": self.cached_at,
            "hits": self.hits,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> CachedAddress:
        return cls(
            grid_key=str(payload["gridKey"]),
            address=str(payload["address"]),
            provider=payload.get("provider"),
            cached_at=payload.get("cachedAt"),
            hits=int(payload.get("hits") or 0),
        )


class GeocodeCacheStore(ABC):
    @abstractmethod
    async def get(self, grid_key: str) -> CachedAddress | None:
        raise NotImplementedError

    @abstractmethod
    async def set(self, entry: CachedAddress, ttl_seconds: int) -> None:
        raise NotImplementedError


class RedisLikeCacheClient(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ex: int | None = None, nx: bool = False) -> bool | None: ...


class InMemoryGeocodeCacheStore(GeocodeCacheStore):
    def __init__(self) -> None:
        self._items: dict[str, tuple[float, CachedAddress]] = {}

    async def get(self, grid_key: str) -> CachedAddress | None:
        item = self._items.get(grid_key)
        if not item:
            return None
        expires_at, entry = item
        if expires_at <= time.time():
            self._items.pop(grid_key, None)
            return None
        return entry

    async def set(self, entry: CachedAddress, ttl_seconds: int) -> None:
        self._items[entry.grid_key] = (time.time() + ttl_seconds, entry)


class RedisGeocodeCacheStore(GeocodeCacheStore):
    def __init__(self, client: RedisLikeCacheClient) -> None:
        self._client = client

    async def get(self, grid_key: str) -> CachedAddress | None:
        raw = await self._client.get(self._key(grid_key))
        if not raw:
            return None
        return CachedAddress.from_dict(json.loads(raw))

    async def set(self, entry: CachedAddress, ttl_seconds: int) -> None:
        payload = json.dumps(entry.to_dict(), ensure_ascii=True)
        await self._client.set(self._key(entry.grid_key), payload, ex=ttl_seconds)

    def _key(self, grid_key: str) -> str:
        return f"geocode_cache:{grid_key}"


@dataclass
class GeocodeAddressCache:
    store: GeocodeCacheStore
    ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS

    async def get(self, grid_key: str) -> CachedAddress | None:
        return await self.store.get(grid_key)

    async def put(self, grid_key: str, address: str, provider: str | None) -> CachedAddress:
        entry = CachedAddress(
            grid_key=grid_key,
            address=address,
            provider=provider,
            cached_at=datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
        )
        await self.store.set(entry, self.ttl_seconds)
        return entry

    async def record_hit(self, entry: CachedAddress) -> CachedAddress:
        # last writer wins; the counter is advisory
        updated = replace(entry, hits=entry.hits + 1)
        await self.store.set(updated, self.ttl_seconds)
        return updated
