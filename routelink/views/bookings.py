"""Rider's booking list joined with each booking's trip."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

from routelink.api.schemas import Booking, Trip
from routelink.domain.entities import can_cancel, is_rateable, seats_label
from routelink.domain.errors import ActionInProgress, RouteLinkError
from routelink.services.bookings import BookingClient
from routelink.services.trips import TripClient
from routelink.views.guards import Liveness, PendingActions, describe_error


@dataclass(frozen=True)
class BookingRow:
    booking: Booking
    trip: Optional[Trip] = None

    @property
    def rateable(self) -> bool:
        return is_rateable(self.booking, self.trip)

    @property
    def cancellable(self) -> bool:
        return can_cancel(self.booking)

    @property
    def title(self) -> str:
        if self.trip is None:
            return f"#{self.booking.trip_id}"
        return f"{self.trip.start_place} → {self.trip.end_place}"

    @property
    def seats(self) -> Optional[str]:
        return seats_label(self.trip) if self.trip is not None else None


class RiderBookings:
    def __init__(self, bookings: BookingClient, trips: TripClient):
        self.booking_client = bookings
        self.trip_client = trips
        self.pending = PendingActions()
        self._liveness = Liveness()

        self.rows: list[BookingRow] = []
        self.error: Optional[str] = None
        self.action_error: Optional[str] = None
        self.loading = False

    def close(self) -> None:
        self._liveness.close()

    def is_cancelling(self, booking_id: int) -> bool:
        return self.pending.is_pending(booking_id)

    async def _trip_or_none(self, trip_id: int) -> Optional[Trip]:
        try:
            return await self.trip_client.get(trip_id)
        except RouteLinkError:
            return None

    async def load(self) -> None:
        live = self._liveness
        self.error = None
        self.loading = True
        try:
            bookings = await self.booking_client.list_mine()
            trip_ids = sorted({b.trip_id for b in bookings})
            fetched = await asyncio.gather(*(self._trip_or_none(i) for i in trip_ids))
        except RouteLinkError as exc:
            if live.alive:
                self.error = describe_error(exc, "Failed to load bookings")
            return
        finally:
            if live.alive:
                self.loading = False
        if not live.alive:
            return

        by_id = dict(zip(trip_ids, fetched))
        self.rows = [BookingRow(b, by_id.get(b.trip_id)) for b in bookings]

    async def cancel(self, booking_id: int) -> bool:
        live = self._liveness
        self.action_error = None
        try:
            async with self.pending.hold(booking_id):
                await self.booking_client.cancel(booking_id)
        except ActionInProgress:
            return False
        except RouteLinkError as exc:
            if live.alive:
                self.action_error = describe_error(exc, "Cancel failed")
            return False
        if live.alive:
            await self.load()
        return True
