from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import httpx

from fleet_alerts.geocode.errors import GeocodeProviderError

logger = logging.getLogger(__name__)

DEFAULT_GEOCODER_URL = "https://nominatim.openstreetmap.org"
DEFAULT_RETRY_DELAYS_SECONDS = (0.3, 0.8, 1.5)
_RETRYABLE_STATUS = frozenset({429, 503})


class ReverseGeocoderClient:
    def __init__(
        self,
        base_url: str = DEFAULT_GEOCODER_URL,
        *,
        user_agent: str = "fleet-monitor-geocode-worker",
        timeout_seconds: float = 5.0,
        retry_delays: Sequence[float] = DEFAULT_RETRY_DELAYS_SECONDS,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._user_agent = user_agent
        self._timeout_seconds = timeout_seconds
        self._retry_delays = tuple(retry_delays)
        self._client_factory = client_factory
        self._sleep_fn = sleep_fn

    @property
    def provider_name(self) -> str:
        return "nominatim"

    async def reverse(self, lat: float, lng: float) -> dict[str, Any]:
        try:
            lat, lng = float(lat), float(lng)
        except (TypeError, ValueError) as exc:
            raise GeocodeProviderError("invalid coordinates for geocode") from exc
        if not math.isfinite(lat) or not math.isfinite(lng):
            raise GeocodeProviderError("invalid coordinates for geocode")
        if lat == 0 and lng == 0:
            raise GeocodeProviderError("null island coordinates are not geocoded")

        attempt = 0
        while True:
            try:
                return await self._fetch_reverse(lat, lng)
            except GeocodeProviderError as exc:
                if exc.status_code not in _RETRYABLE_STATUS or attempt >= len(self._retry_delays):
                    raise
                delay = self._retry_delays[attempt]
                attempt += 1
                logger.warning(
                    "geocode_provider_retry",
                    extra={"component": "geocode", "status_code": exc.status_code, "attempt": attempt},
                )
                await self._sleep_fn(delay)

    async def _fetch_reverse(self, lat: float, lng: float) -> dict[str, Any]:
        params = {
            "format": "json",
            "lat": str(lat),
            "lon": str(lng),
            "zoom": "18",
            "addressdetails": "1",
        }
        headers = {"User-Agent": self._user_agent, "Accept": "application/json"}
        try:
            factory = self._client_factory or (lambda: httpx.AsyncClient(timeout=self._timeout_seconds))
            async with factory() as client:
                response = await client.get(f"{self._base_url}/reverse", params=params, headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise GeocodeProviderError(
                f"geocode HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise GeocodeProviderError("geocode request failed") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise GeocodeProviderError("geocode response is not JSON") from exc
        if not isinstance(payload, dict):
            raise GeocodeProviderError("unexpected geocode payload")
        return payload


def format_address(payload: dict[str, Any] | None) -> str | None:
    if not payload:
        return None
    raw = payload.get("display_name") or payload.get("formattedAddress") or payload.get("address")
    if not isinstance(raw, str):
        return None
    formatted = " ".join(raw.split())
    return formatted or None
