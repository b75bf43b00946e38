"""
Trip Lifecycle Client
=====================

POST /api/trips                 -- create a trip (driver)
GET  /api/trips                 -- list all trips
GET  /api/trips/mine            -- the caller's own trips
GET  /api/trips/{id}            -- fetch one trip
POST /api/trips/{id}/close      -- OPEN/FULL -> CLOSED (driver)
POST /api/trips/{id}/reopen     -- CLOSED -> OPEN (driver)
PUT  /api/trips/{id}/polyline   -- replace the stored route
GET  /api/trips/search[/near|/route]

Trips are server-owned.  Every method returns the server's copy; nothing
here edits a ``Trip`` in place.  Errors propagate as ``ApiError`` with no
retries.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Union

import polyline as polyline_codec

from routelink.api.gateway import ApiGateway
from routelink.api.schemas import (
    CreateTripRequest,
    PolylinePoint,
    SearchByDateQuery,
    SearchNearQuery,
    SearchRouteQuery,
    Trip,
)
from routelink.domain.errors import ApiError, ValidationError

logger = logging.getLogger(__name__)

Points = Iterable[tuple[float, float]]


class TripClient:
    def __init__(self, gateway: ApiGateway):
        self.gateway = gateway

    async def create(self, req: CreateTripRequest) -> Trip:
        return await self.gateway.post("/api/trips", req, response_model=Trip)

    async def list_all(self) -> list[Trip]:
        return await self.gateway.get("/api/trips", response_model=list[Trip])

    async def list_mine(self, owner_id: Optional[int] = None) -> list[Trip]:
        """Driver's own trips.

        Falls back to the generic list when ``/mine`` is unavailable.  The
        fallback is deprecated: it exists for older backends and will go
        once every deployment serves ``/mine``.
        """
        try:
            return await self.gateway.get("/api/trips/mine", response_model=list[Trip])
        except ApiError as exc:
            if exc.is_auth_error:
                raise
            logger.warning(
                "GET /api/trips/mine failed (%s); using deprecated list fallback",
                exc.status if exc.status is not None else "network",
            )
        trips = await self.gateway.get(
            "/api/trips", params={"mine": True}, response_model=list[Trip]
        )
        if owner_id is None:
            return trips
        return [t for t in trips if t.driver_id == owner_id]

    async def get(self, trip_id: int) -> Trip:
        return await self.gateway.get(f"/api/trips/{trip_id}", response_model=Trip)

    async def close(self, trip_id: int) -> Trip:
        return await self.gateway.post(f"/api/trips/{trip_id}/close", response_model=Trip)

    async def reopen(self, trip_id: int) -> Trip:
        return await self.gateway.post(f"/api/trips/{trip_id}/reopen", response_model=Trip)

    async def search_by_date(self, q: SearchByDateQuery) -> list[Trip]:
        return await self.gateway.get("/api/trips/search", params=q, response_model=list[Trip])

    async def search_near(self, q: SearchNearQuery) -> list[Trip]:
        return await self.gateway.get(
            "/api/trips/search/near", params=q, response_model=list[Trip]
        )

    async def search_route(self, q: SearchRouteQuery) -> list[Trip]:
        return await self.gateway.get(
            "/api/trips/search/route", params=q, response_model=list[Trip]
        )

    async def set_polyline(self, trip_id: int, route: Union[str, Points]) -> Trip:
        """Replace the trip's route with *route* (points or encoded polyline)."""
        if isinstance(route, str):
            try:
                pts = polyline_codec.decode(route)
            except (ValueError, IndexError) as exc:
                raise ValidationError(f"Invalid encoded polyline: {exc}") from exc
        else:
            pts = list(route)
        if len(pts) < 2:
            raise ValidationError("A route needs at least two points")
        body = {"points": [PolylinePoint(lat=lat, lng=lng).to_wire() for lat, lng in pts]}
        return await self.gateway.put(
            f"/api/trips/{trip_id}/polyline", body, response_model=Trip
        )
