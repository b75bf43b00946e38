"""
Driver dashboard view-model.

Holds the driver's trips, the selected trip and its booking requests.
Every mutation goes to the server first and the affected list is reloaded
afterwards; seat counts and trip status are never guessed locally.
"""

from __future__ import annotations

import logging
from typing import Optional

from routelink.api.schemas import Booking, Trip
from routelink.domain.entities import can_respond
from routelink.domain.enums import TripStatus
from routelink.domain.errors import ActionInProgress, RouteLinkError
from routelink.services.bookings import BookingClient
from routelink.services.session import SessionStore
from routelink.services.trips import TripClient
from routelink.views.guards import Liveness, PendingActions, describe_error

logger = logging.getLogger(__name__)


class DriverDashboard:
    def __init__(self, store: SessionStore, trips: TripClient, bookings: BookingClient):
        self.store = store
        self.trip_client = trips
        self.booking_client = bookings
        self.pending = PendingActions()
        self._liveness = Liveness()

        self.trips: list[Trip] = []
        self.selected: Optional[Trip] = None
        self.bookings: list[Booking] = []
        self.trips_error: Optional[str] = None
        self.bookings_error: Optional[str] = None
        self.action_error: Optional[str] = None
        self.loading_trips = False
        self.loading_bookings = False

    def close(self) -> None:
        """The page went away; in-flight results are dropped."""
        self._liveness.close()

    # ── Loading ───────────────────────────────────────────────────

    async def _fetch_mine(self) -> list[Trip]:
        user = self.store.get_session().user
        return await self.trip_client.list_mine(owner_id=user.id if user else None)

    async def load(self) -> None:
        live = self._liveness
        self.trips_error = None
        self.loading_trips = True
        try:
            trips = await self._fetch_mine()
        except RouteLinkError as exc:
            if live.alive:
                self.trips_error = describe_error(exc, "Failed to load trips")
            return
        finally:
            if live.alive:
                self.loading_trips = False
        if not live.alive:
            return

        self.trips = trips
        if trips:
            await self.select(trips[0].id)
        else:
            self.selected = None
            self.bookings = []

    async def select(self, trip_id: int) -> None:
        self.selected = next((t for t in self.trips if t.id == trip_id), None)
        self.bookings = []
        if self.selected is not None:
            await self.load_bookings(trip_id)

    async def load_bookings(self, trip_id: int) -> None:
        live = self._liveness
        self.bookings_error = None
        self.loading_bookings = True
        try:
            rows = await self.booking_client.list_for_trip(trip_id)
        except RouteLinkError as exc:
            if live.alive:
                self.bookings_error = describe_error(exc, "Failed to load bookings")
            return
        finally:
            if live.alive:
                self.loading_bookings = False
        # drop results for a trip that is no longer selected
        if live.alive and self.selected is not None and self.selected.id == trip_id:
            self.bookings = rows

    # ── Actions ───────────────────────────────────────────────────

    def offers_response(self, booking: Booking) -> bool:
        """Confirm/Decline are only offered for REQUESTED bookings."""
        return can_respond(booking)

    async def toggle_trip_status(self) -> bool:
        """Close the selected trip, or reopen it if it is CLOSED."""
        trip = self.selected
        if trip is None:
            return False
        live = self._liveness
        self.action_error = None
        try:
            async with self.pending.hold(("trip", trip.id)):
                if trip.status == TripStatus.CLOSED:
                    await self.trip_client.reopen(trip.id)
                else:
                    await self.trip_client.close(trip.id)
                trips = await self._fetch_mine()
        except ActionInProgress:
            return False
        except RouteLinkError as exc:
            if live.alive:
                self.action_error = describe_error(exc, "Trip action failed")
            return False
        if not live.alive:
            return True

        self.trips = trips
        self.selected = next((t for t in trips if t.id == trip.id), None)
        return True

    async def confirm(self, booking_id: int) -> bool:
        return await self._respond(booking_id, confirm=True)

    async def decline(self, booking_id: int) -> bool:
        return await self._respond(booking_id, confirm=False)

    async def _respond(self, booking_id: int, *, confirm: bool) -> bool:
        live = self._liveness
        self.action_error = None
        try:
            async with self.pending.hold(("booking", booking_id)):
                if confirm:
                    await self.booking_client.confirm(booking_id)
                else:
                    await self.booking_client.decline(booking_id)
        except ActionInProgress:
            return False
        except RouteLinkError as exc:
            if live.alive:
                self.action_error = describe_error(exc, "Booking action failed")
            return False

        if live.alive and self.selected is not None:
            # confirm changes seatsLeft/status on the trip as well
            await self.load_bookings(self.selected.id)
            try:
                refreshed = await self.trip_client.get(self.selected.id)
            except RouteLinkError as exc:
                logger.info("Trip refresh after booking action failed: %s", exc)
            else:
                if live.alive:
                    self._replace_trip(refreshed)
        return True

    def _replace_trip(self, trip: Trip) -> None:
        self.trips = [trip if t.id == trip.id else t for t in self.trips]
        if self.selected is not None and self.selected.id == trip.id:
            self.selected = trip
