"""
Shared test fixtures.

The RouteLink backend is replaced by ``FakeBackend``: a small FastAPI app
with in-memory state, served to the client through ``httpx.ASGITransport``
so tests run without a real server.  Its booking / trip rules mirror the
production backend closely enough for the lifecycle scenarios (seat
accounting, FULL on exhaustion, CLOSED trips not bookable, driver-only
actions, 401 on a bad token).
"""

from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import polyline
import pytest
import pytest_asyncio
from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse

from routelink.client import RouteLinkClient
from routelink.config import Settings
from routelink.domain.entities import Identity, check_booking_transition
from routelink.domain.enums import BookingStatus
from routelink.domain.errors import InvalidStateTransition
from routelink.infrastructure.storage import MemoryStorage

TEST_BASE_URL = "http://test"


class _Failure(Exception):
    def __init__(self, status: int, code: str, message: str):
        self.status = status
        self.code = code
        self.message = message


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class FakeBackend:
    def __init__(self):
        self.users: dict[int, dict[str, Any]] = {}
        self.passwords: dict[str, str] = {}
        self.tokens: dict[str, int] = {}
        self.trips: dict[int, dict[str, Any]] = {}
        self.bookings: dict[int, dict[str, Any]] = {}
        self.ratings: list[dict[str, Any]] = []
        self.calls: list[tuple[str, str]] = []
        self.last_params: dict[str, str] = {}
        self.mine_supported = True
        self.unified_rows: Optional[list[Any]] = None
        self._ids = itertools.count(1)
        self.app = self._build_app()

    # ── Seeding helpers ───────────────────────────────────────────

    def add_user(self, name: str, email: str, role: str, password: str = "pw") -> str:
        """Create a user and return a valid token for them."""
        uid = next(self._ids)
        self.users[uid] = {"id": uid, "name": name, "email": email, "role": role}
        self.passwords[email] = password
        return self._issue(uid)

    def _issue(self, uid: int) -> str:
        token = f"tok-{uid}-{len(self.tokens)}"
        self.tokens[token] = uid
        return token

    def trip_payload(self, **overrides: Any) -> dict[str, Any]:
        payload = {
            "startPlace": "Boston, MA",
            "startLat": 42.3601,
            "startLng": -71.0589,
            "endPlace": "New York, NY",
            "endLat": 40.7128,
            "endLng": -74.0060,
            "rideAt": "2030-05-01T09:00:00+00:00",
            "pricePerSeat": 25.5,
            "seatsTotal": 3,
        }
        payload.update(overrides)
        return payload

    # ── Internals ─────────────────────────────────────────────────

    def _me(self, request: Request) -> dict[str, Any]:
        auth = request.headers.get("authorization", "")
        token = auth[len("Bearer "):] if auth.startswith("Bearer ") else ""
        uid = self.tokens.get(token)
        if uid is None:
            raise _Failure(401, "UNAUTHORIZED", "Invalid or missing token")
        return self.users[uid]

    def _trip(self, trip_id: int) -> dict[str, Any]:
        trip = self.trips.get(trip_id)
        if trip is None:
            raise _Failure(404, "NOT_FOUND", f"Trip not found: {trip_id}")
        return trip

    def _booking(self, booking_id: int) -> dict[str, Any]:
        booking = self.bookings.get(booking_id)
        if booking is None:
            raise _Failure(400, "BAD_REQUEST", "Booking not found")
        return booking

    def _own_trip(self, request: Request, trip: dict[str, Any], action: str) -> None:
        if trip["driverId"] != self._me(request)["id"]:
            raise _Failure(409, "CONFLICT", f"Only driver can {action}")

    def _move(self, booking: dict[str, Any], new_status: BookingStatus) -> None:
        try:
            check_booking_transition(BookingStatus(booking["status"]), new_status)
        except InvalidStateTransition:
            raise _Failure(409, "CONFLICT", f"Not in REQUESTED state ({booking['status']})")
        booking["status"] = new_status.value

    def _booking_out(self, b: dict[str, Any], with_rider: bool = False) -> dict[str, Any]:
        out = {k: v for k, v in b.items() if k != "riderId"}
        if with_rider:
            rider = self.users[b["riderId"]]
            out["rider"] = {"id": rider["id"], "name": rider["name"], "email": rider["email"]}
        return out

    def _auth_out(self, uid: int) -> dict[str, Any]:
        u = self.users[uid]
        return {
            "token": self._issue(uid),
            "userId": uid,
            "email": u["email"],
            "name": u["name"],
            "role": u["role"],
        }

    def _build_app(self) -> FastAPI:
        app = FastAPI()

        @app.exception_handler(_Failure)
        async def _failure(request: Request, exc: _Failure):
            return JSONResponse(
                status_code=exc.status,
                content={"code": exc.code, "message": exc.message, "timestamp": _now()},
            )

        @app.middleware("http")
        async def _record(request: Request, call_next):
            self.calls.append((request.method, request.url.path))
            self.last_params = dict(request.query_params)
            return await call_next(request)

        # ── Auth ──────────────────────────────────────────────────

        @app.post("/auth/signup")
        async def signup(payload: dict = Body(...)):
            if payload["email"] in self.passwords:
                raise _Failure(409, "CONFLICT", "Email already registered")
            uid = next(self._ids)
            self.users[uid] = {
                "id": uid,
                "name": payload["name"],
                "email": payload["email"],
                "role": payload["role"],
            }
            self.passwords[payload["email"]] = payload["password"]
            return self._auth_out(uid)

        @app.post("/auth/login")
        async def login(payload: dict = Body(...)):
            if self.passwords.get(payload.get("email")) != payload.get("password"):
                raise _Failure(401, "UNAUTHORIZED", "Bad credentials")
            uid = next(u["id"] for u in self.users.values() if u["email"] == payload["email"])
            return self._auth_out(uid)

        @app.get("/auth/me")
        async def me(request: Request):
            return self._me(request)

        # ── Trips ─────────────────────────────────────────────────

        @app.get("/api/trips")
        async def list_trips():
            return list(self.trips.values())

        @app.post("/api/trips")
        async def create_trip(request: Request, payload: dict = Body(...)):
            me = self._me(request)
            if me["role"] != "DRIVER":
                raise _Failure(403, "FORBIDDEN", "Not allowed")
            tid = next(self._ids)
            trip = {
                "id": tid,
                "driverId": me["id"],
                "startPlace": payload["startPlace"],
                "startLat": payload["startLat"],
                "startLng": payload["startLng"],
                "endPlace": payload["endPlace"],
                "endLat": payload["endLat"],
                "endLng": payload["endLng"],
                "rideAt": payload["rideAt"],
                "pricePerSeat": f"{float(payload['pricePerSeat']):.2f}",
                "seatsTotal": payload["seatsTotal"],
                "seatsLeft": payload["seatsTotal"],
                "status": "OPEN",
                "active": True,
                "polyline": payload.get("polyline"),
            }
            self.trips[tid] = trip
            return trip

        @app.get("/api/trips/mine")
        async def my_trips(request: Request):
            me = self._me(request)
            if not self.mine_supported:
                raise _Failure(404, "NOT_FOUND", "No static resource api/trips/mine")
            return [t for t in self.trips.values() if t["driverId"] == me["id"]]

        @app.get("/api/trips/search")
        async def search_by_date(date: str):
            return [t for t in self.trips.values() if t["rideAt"].startswith(date)]

        @app.get("/api/trips/search/near")
        async def search_near():
            return [t for t in self.trips.values() if t["status"] == "OPEN"]

        @app.get("/api/trips/search/route")
        async def search_route():
            return [t for t in self.trips.values() if t["status"] == "OPEN"]

        @app.post("/api/trips/search-unified")
        async def search_unified(request: Request, payload: dict = Body(...)):
            self._me(request)
            if self.unified_rows is not None:
                return self.unified_rows
            return [t for t in self.trips.values() if t["status"] == "OPEN"]

        @app.get("/api/trips/{trip_id}")
        async def get_trip(trip_id: int):
            return self._trip(trip_id)

        @app.post("/api/trips/{trip_id}/close")
        async def close_trip(request: Request, trip_id: int):
            trip = self._trip(trip_id)
            self._own_trip(request, trip, "close")
            trip["status"] = "CLOSED"
            trip["active"] = False
            return trip

        @app.post("/api/trips/{trip_id}/reopen")
        async def reopen_trip(request: Request, trip_id: int):
            trip = self._trip(trip_id)
            self._own_trip(request, trip, "reopen")
            if trip["seatsLeft"] <= 0:
                raise _Failure(409, "CONFLICT", "Cannot reopen: no seats left")
            trip["status"] = "OPEN"
            trip["active"] = True
            return trip

        @app.put("/api/trips/{trip_id}/polyline")
        async def set_polyline(request: Request, trip_id: int, payload: dict = Body(...)):
            trip = self._trip(trip_id)
            self._own_trip(request, trip, "edit route")
            points = [(p["lat"], p["lng"]) for p in payload["points"]]
            trip["polyline"] = polyline.encode(points)
            return trip

        # ── Bookings ──────────────────────────────────────────────

        @app.get("/api/bookings/me")
        async def my_bookings(request: Request):
            me = self._me(request)
            return [
                self._booking_out(b)
                for b in self.bookings.values()
                if b["riderId"] == me["id"]
            ]

        @app.post("/api/bookings/request")
        async def request_booking(request: Request, payload: dict = Body(...)):
            me = self._me(request)
            trip = self.trips.get(payload.get("tripId"))
            if trip is None:
                raise _Failure(400, "BAD_REQUEST", f"Trip not found: {payload.get('tripId')}")
            seats = max(1, int(payload.get("seats", 1)))
            if trip["status"] != "OPEN":
                raise _Failure(409, "CONFLICT", "Trip not bookable")
            if trip["driverId"] == me["id"]:
                raise _Failure(409, "CONFLICT", "Driver cannot book own trip")
            if seats > trip["seatsLeft"]:
                raise _Failure(409, "CONFLICT", "Not enough seats left")
            for b in self.bookings.values():
                if (
                    b["tripId"] == trip["id"]
                    and b["riderId"] == me["id"]
                    and b["status"] in ("REQUESTED", "CONFIRMED")
                ):
                    raise _Failure(409, "CONFLICT", "You already have a booking for this trip")
            bid = next(self._ids)
            booking = {
                "id": bid,
                "tripId": trip["id"],
                "seats": seats,
                "status": "REQUESTED",
                "createdAt": _now(),
                "riderId": me["id"],
            }
            self.bookings[bid] = booking
            return self._booking_out(booking)

        @app.post("/api/bookings/{booking_id}/cancel")
        async def cancel_booking(request: Request, booking_id: int):
            booking = self._booking(booking_id)
            if booking["riderId"] != self._me(request)["id"]:
                raise _Failure(409, "CONFLICT", "Only rider can cancel")
            was_confirmed = booking["status"] == "CONFIRMED"
            self._move(booking, BookingStatus.CANCELLED)
            if was_confirmed:
                trip = self.trips[booking["tripId"]]
                trip["seatsLeft"] += booking["seats"]
                if trip["status"] == "FULL" and trip["seatsLeft"] > 0:
                    trip["status"] = "OPEN"
                    trip["active"] = True
            return self._booking_out(booking)

        @app.post("/api/bookings/{booking_id}/confirm")
        async def confirm_booking(request: Request, booking_id: int):
            booking = self._booking(booking_id)
            trip = self.trips[booking["tripId"]]
            self._own_trip(request, trip, "confirm")
            if trip["status"] == "CLOSED":
                raise _Failure(409, "CONFLICT", "Trip already closed")
            if booking["status"] == "REQUESTED" and trip["seatsLeft"] < booking["seats"]:
                raise _Failure(409, "CONFLICT", "Not enough seats left")
            self._move(booking, BookingStatus.CONFIRMED)
            trip["seatsLeft"] -= booking["seats"]
            if trip["seatsLeft"] == 0:
                trip["status"] = "FULL"
                trip["active"] = False
            return self._booking_out(booking)

        @app.post("/api/bookings/{booking_id}/decline")
        async def decline_booking(request: Request, booking_id: int):
            booking = self._booking(booking_id)
            self._own_trip(request, self.trips[booking["tripId"]], "decline")
            self._move(booking, BookingStatus.DECLINED)
            return self._booking_out(booking)

        @app.get("/api/bookings/trip/{trip_id}")
        async def bookings_for_trip(request: Request, trip_id: int):
            trip = self._trip(trip_id)
            if trip["driverId"] != self._me(request)["id"]:
                raise _Failure(403, "FORBIDDEN", "Not allowed")
            return [
                self._booking_out(b, with_rider=True)
                for b in self.bookings.values()
                if b["tripId"] == trip_id
            ]

        # ── Ratings ───────────────────────────────────────────────

        @app.post("/api/ratings")
        async def rate(request: Request, payload: dict = Body(...)):
            me = self._me(request)
            booking = self._booking(payload["bookingId"])
            if self.trips[booking["tripId"]]["status"] != "CLOSED":
                raise _Failure(400, "BAD_REQUEST", "Trip not closed yet")
            if any(
                r["bookingId"] == booking["id"] and r["raterId"] == me["id"]
                for r in self.ratings
            ):
                raise _Failure(400, "BAD_REQUEST", "You already rated this booking")
            rating = {
                "id": next(self._ids),
                "bookingId": booking["id"],
                "raterId": me["id"],
                "stars": payload["stars"],
                "comment": payload.get("comment"),
            }
            self.ratings.append(rating)
            return rating

        return app


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        api_base=TEST_BASE_URL,
        session_backend="memory",
        google_maps_key="",
        request_timeout=5.0,
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest_asyncio.fixture
async def make_client(backend: FakeBackend, test_settings: Settings):
    """Factory for clients that share one FakeBackend (one per user)."""
    clients: list[RouteLinkClient] = []

    def _make(token: Optional[str] = None) -> RouteLinkClient:
        client = RouteLinkClient(
            test_settings,
            storage=MemoryStorage(),
            transport=httpx.ASGITransport(app=backend.app),
        )
        if token is not None:
            uid = backend.tokens[token]
            client.session.set_session(token, Identity.from_record(backend.users[uid]))
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()


def mock_gateway_client(handler) -> RouteLinkClient:
    """Client whose HTTP calls are answered by *handler* (``httpx.MockTransport``)."""
    return RouteLinkClient(
        Settings(api_base=TEST_BASE_URL, session_backend="memory", google_maps_key=""),
        storage=MemoryStorage(),
        transport=httpx.MockTransport(handler),
    )
