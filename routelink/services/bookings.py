"""
Booking Lifecycle Client
========================

Rider:  request, cancel, list_mine
Driver: list_for_trip, confirm, decline

The server decides whether a transition is legal and what it does to the
trip's seat count.  After any mutating call, callers reload the affected
list rather than patching local state.
"""

from __future__ import annotations

from routelink.api.gateway import ApiGateway
from routelink.api.schemas import Booking, BookingRequest
from routelink.domain.errors import ValidationError


class BookingClient:
    def __init__(self, gateway: ApiGateway):
        self.gateway = gateway

    # ── Rider ─────────────────────────────────────────────────────

    async def request(self, trip_id: int, seats: int) -> Booking:
        if isinstance(seats, bool) or not isinstance(seats, int) or seats < 1:
            raise ValidationError("seats must be a whole number of at least 1")
        return await self.gateway.post(
            "/api/bookings/request",
            BookingRequest(trip_id=trip_id, seats=seats),
            response_model=Booking,
        )

    async def cancel(self, booking_id: int) -> Booking:
        return await self.gateway.post(
            f"/api/bookings/{booking_id}/cancel", response_model=Booking
        )

    async def list_mine(self) -> list[Booking]:
        return await self.gateway.get("/api/bookings/me", response_model=list[Booking])

    # ── Driver ────────────────────────────────────────────────────

    async def list_for_trip(self, trip_id: int) -> list[Booking]:
        return await self.gateway.get(
            f"/api/bookings/trip/{trip_id}", response_model=list[Booking]
        )

    async def confirm(self, booking_id: int) -> Booking:
        return await self.gateway.post(
            f"/api/bookings/{booking_id}/confirm", response_model=Booking
        )

    async def decline(self, booking_id: int) -> Booking:
        return await self.gateway.post(
            f"/api/bookings/{booking_id}/decline", response_model=Booking
        )
