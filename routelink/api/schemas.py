"""Pydantic request / response schemas for the RouteLink REST API.

The backend speaks camelCase JSON; every model here accepts either the wire
name or the Python attribute name and dumps back to camelCase.
"""

from __future__ import annotations

import datetime as dt
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional, Union

import polyline as polyline_codec
from pydantic import (
    AliasChoices,
    BaseModel,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from routelink.domain.entities import Identity
from routelink.domain.enums import BookingStatus, MatchedBy, Role, TripStatus

_WIRE = {"alias_generator": to_camel, "populate_by_name": True, "extra": "ignore"}


class WireModel(BaseModel):
    model_config = _WIRE

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


# ── Auth ──────────────────────────────────────────────────────────────


class LoginRequest(WireModel):
    email: str
    password: str


class SignupRequest(WireModel):
    name: str
    email: str
    password: str
    role: Role


class AuthResponse(WireModel):
    token: str
    user_id: int
    email: str
    name: str = ""
    role: Role

    def to_identity(self) -> Identity:
        return Identity(
            id=self.user_id, name=self.name, email=self.email, role=self.role
        )


class UserResponse(WireModel):
    """``GET /auth/me`` -- token claims ``{email, uid, roles}``.

    Older builds answered with a user record (``id``/``userId``, ``role``);
    both shapes are accepted.  ``roles`` is a list or a single name,
    possibly ``ROLE_``-prefixed.
    """

    id: int = Field(validation_alias=AliasChoices("id", "userId", "uid"))
    email: str = ""
    name: str = ""
    role: Role

    @model_validator(mode="before")
    @classmethod
    def _role_from_roles(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("role") is not None:
            return data
        roles = data.get("roles")
        if isinstance(roles, (list, tuple)):
            roles = roles[0] if roles else None
        if isinstance(roles, str):
            data = {**data, "role": roles.upper().removeprefix("ROLE_")}
        return data

    def to_identity(self) -> Identity:
        return Identity(id=self.id, name=self.name, email=self.email, role=self.role)


# ── Trips ─────────────────────────────────────────────────────────────


class PolylinePoint(WireModel):
    lat: float
    lng: float


class Trip(WireModel):
    id: int
    driver_id: Optional[int] = None
    start_place: str = ""
    start_lat: float
    start_lng: float
    end_place: str = ""
    end_lat: float
    end_lng: float
    ride_at: datetime
    price_per_seat: Decimal  # BigDecimal may arrive as a string
    seats_total: int = Field(..., ge=0)
    seats_left: int = Field(..., ge=0)
    status: TripStatus
    active: bool = True
    polyline: Optional[str] = None

    @model_validator(mode="after")
    def _seats_within_total(self) -> "Trip":
        if self.seats_left > self.seats_total:
            raise ValueError("seatsLeft cannot exceed seatsTotal")
        return self

    def route_points(self) -> list[tuple[float, float]]:
        """Decode the encoded route polyline; empty when none was stored."""
        if not self.polyline:
            return []
        return polyline_codec.decode(self.polyline)


class CreateTripRequest(WireModel):
    start_place: str
    start_lat: float = Field(..., ge=-90, le=90)
    start_lng: float = Field(..., ge=-180, le=180)
    end_place: str
    end_lat: float = Field(..., ge=-90, le=90)
    end_lng: float = Field(..., ge=-180, le=180)
    polyline: Optional[str] = None
    ride_at: datetime
    price_per_seat: Decimal = Field(..., ge=0)
    seats_total: int = Field(..., ge=1)

    @field_serializer("price_per_seat")
    def _price_as_number(self, v: Decimal) -> float:
        return float(v)


SortKey = Literal["rideAt", "pricePerSeat", "time", "price"]
SortOrder = Literal["asc", "desc"]


class _SearchFilters(WireModel):
    date: dt.date
    at: Optional[str] = None
    window_min: Optional[int] = None
    sort: Optional[SortKey] = None
    order: Optional[SortOrder] = None
    page: Optional[int] = None
    size: Optional[int] = None
    min_seats: Optional[int] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None


class SearchByDateQuery(_SearchFilters):
    pass


class SearchNearQuery(_SearchFilters):
    start_lat: float
    start_lng: float
    end_lat: float
    end_lng: float
    radius_km: Optional[float] = None


class SearchRouteQuery(_SearchFilters):
    pickup_lat: float
    pickup_lng: float
    drop_lat: float
    drop_lng: float
    radius_km: Optional[float] = None


# ── Unified search ────────────────────────────────────────────────────


class UnifiedSearchRequest(WireModel):
    start_text: Optional[str] = None
    end_text: Optional[str] = None
    start_lat: float
    start_lng: float
    end_lat: float
    end_lng: float
    seats: int = Field(1, ge=1)
    date: dt.date


class ScoredTrip(WireModel):
    trip: Trip
    score: float = 0.0
    matched_by: Optional[MatchedBy] = None

    @field_validator("matched_by", mode="before")
    @classmethod
    def _coerce_tag(cls, v: Any) -> Any:
        # free-form on the server ("near", "along+near", ...)
        if v is None or isinstance(v, MatchedBy):
            return v
        try:
            return MatchedBy(str(v).strip().upper())
        except ValueError:
            return MatchedBy.UNKNOWN


def _row_kind(raw: Any) -> str:
    if isinstance(raw, dict):
        return "scored" if "trip" in raw else "bare"
    return "scored" if isinstance(raw, ScoredTrip) else "bare"


# Tagged variant: each element is either a scored match record or a bare trip.
SearchRow = Annotated[
    Union[Annotated[ScoredTrip, Tag("scored")], Annotated[Trip, Tag("bare")]],
    Discriminator(_row_kind),
]

search_rows_adapter = TypeAdapter(list[SearchRow])


# ── Bookings ──────────────────────────────────────────────────────────


class RiderSummary(WireModel):
    id: int
    name: str = ""
    email: str = ""


class Booking(WireModel):
    id: int
    trip_id: int
    seats: int = Field(..., ge=1)
    status: BookingStatus
    created_at: Optional[datetime] = None
    rider: Optional[RiderSummary] = None


class BookingRequest(WireModel):
    trip_id: int
    seats: int


# ── Ratings ───────────────────────────────────────────────────────────


class RatingRequest(WireModel):
    booking_id: int
    stars: int
    comment: Optional[str] = None
