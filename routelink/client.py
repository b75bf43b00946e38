"""
RouteLink client factory.

* Builds the session store on the configured storage backend.
* Wires the gateway, resource loader, geocoder and every service.
* ``async with`` starts background session validation on enter and
  stops it / closes HTTP clients on exit.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from routelink.api.gateway import ApiGateway
from routelink.config import Settings, settings as default_settings
from routelink.infrastructure.geocoding import Geocoder, GoogleGeocoder
from routelink.infrastructure.loader import ResourceLoader
from routelink.infrastructure.storage import SessionStorage, build_storage
from routelink.services.auth import AuthClient
from routelink.services.bookings import BookingClient
from routelink.services.ratings import RatingClient
from routelink.services.search import UnifiedSearch
from routelink.services.session import SessionStore
from routelink.services.trips import TripClient
from routelink.views.bookings import RiderBookings
from routelink.views.dashboard import DriverDashboard

logger = logging.getLogger(__name__)


class RouteLinkClient:
    def __init__(
        self,
        config: Optional[Settings] = None,
        *,
        storage: Optional[SessionStorage] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        geocoder: Optional[Geocoder] = None,
    ):
        self.config = config or default_settings
        cfg = self.config

        if storage is None:
            storage = build_storage(
                cfg.session_backend,
                path=cfg.session_file,
                redis_url=cfg.redis_url,
                prefix=cfg.redis_key_prefix,
            )
        self.session = SessionStore(storage)
        self.gateway = ApiGateway(
            cfg.api_base, self.session, timeout=cfg.request_timeout, transport=transport
        )

        self.loader = ResourceLoader()
        if geocoder is None and cfg.google_maps_key:
            geocoder = GoogleGeocoder(
                cfg.google_maps_key,
                self.loader,
                url=cfg.google_geocode_url,
                timeout=cfg.request_timeout,
            )
        self.geocoder = geocoder

        self.auth = AuthClient(self.gateway, self.session)
        self.trips = TripClient(self.gateway)
        self.bookings = BookingClient(self.gateway)
        self.ratings = RatingClient(self.gateway)
        self.search = UnifiedSearch(self.gateway, self.geocoder)

    # ── Page view-models ──────────────────────────────────────────

    def driver_dashboard(self) -> DriverDashboard:
        return DriverDashboard(self.session, self.trips, self.bookings)

    def rider_bookings(self) -> RiderBookings:
        return RiderBookings(self.bookings, self.trips)

    # ── Lifecycle ─────────────────────────────────────────────────

    async def start(self) -> None:
        """Validate a persisted session without blocking the caller."""
        self.session.validate_in_background(self.gateway)

    async def aclose(self) -> None:
        await self.session.stop_validation()
        if isinstance(self.geocoder, GoogleGeocoder):
            await self.geocoder.aclose()
        await self.gateway.aclose()
        logger.debug("RouteLink client closed")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *args):
        await self.aclose()
