"""
Google Maps geocoding of free-text places.

The HTTP client and the API-key check are a one-time bootstrap run through
the ``ResourceLoader`` under ``MAPS_RESOURCE``: the first lookup (or several
concurrent first lookups) trigger exactly one bootstrap, later lookups reuse
it, and a failed bootstrap is retried on the next lookup.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from routelink.domain.errors import ResourceLoadError
from routelink.infrastructure.loader import ResourceLoader

logger = logging.getLogger(__name__)

MAPS_RESOURCE = "google-maps"

Coordinates = tuple[float, float]


class Geocoder(Protocol):
    async def geocode(self, text: str) -> Optional[Coordinates]: ...


class GoogleGeocoder:
    def __init__(
        self,
        api_key: str,
        loader: ResourceLoader,
        *,
        url: str = "https://maps.googleapis.com/maps/api/geocode/json",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.loader = loader
        loader.register(MAPS_RESOURCE, self._bootstrap, lambda: self._client is not None)

    async def _bootstrap(self) -> None:
        if not self.api_key:
            raise ResourceLoadError("Google Maps API key is not configured")

        client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        try:
            # A denied key is reported in the body, not the HTTP status.
            resp = await client.get(
                self.url, params={"address": "0,0", "key": self.api_key}
            )
            resp.raise_for_status()
            status = resp.json().get("status")
        except (httpx.HTTPError, ValueError) as exc:
            await client.aclose()
            raise ResourceLoadError(f"Failed to load Google Maps geocoding: {exc}") from exc
        if status in ("REQUEST_DENIED", "INVALID_REQUEST"):
            await client.aclose()
            raise ResourceLoadError(f"Google Maps rejected the API key ({status})")
        self._client = client

    async def geocode(self, text: str) -> Optional[Coordinates]:
        """Resolve *text* to ``(lat, lng)``; ``None`` when nothing matches."""
        query = text.strip()
        if not query:
            return None
        await self.loader.load(MAPS_RESOURCE)
        client = self._client
        if client is None:  # closed while loading
            raise ResourceLoadError("Google Maps geocoding was shut down")

        try:
            resp = await client.get(
                self.url, params={"address": query, "key": self.api_key}
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Geocoding request failed: %s", exc)
            return None

        if data.get("status") != "OK":
            return None
        results = data.get("results") or []
        location = (results[0].get("geometry") or {}).get("location") if results else None
        if not location:
            return None
        return float(location["lat"]), float(location["lng"])

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self.loader.reset(MAPS_RESOURCE)
