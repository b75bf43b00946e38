"""
Domain entities and derived predicates.

Patterns used
-------------
- ``Session`` is all-or-nothing: an empty token always pairs with no user.
- Derived views (``is_rateable``, ``can_cancel``, ``can_respond``) are pure
  functions over fetched entities.  They are recomputed on read and never
  stored on the entities themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .enums import (
    BOOKING_TRANSITIONS,
    TRIP_TRANSITIONS,
    BookingStatus,
    MatchedBy,
    Role,
    TripStatus,
)
from .errors import InvalidStateTransition


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Identity:
    id: int
    name: str
    email: str
    role: Role

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Identity":
        """Build from the compact persisted record (or an auth response)."""
        return cls(
            id=int(record["id"]),
            name=str(record.get("name") or ""),
            email=str(record.get("email") or ""),
            role=Role(record["role"]),
        )

    def as_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
        }


@dataclass(frozen=True)
class Session:
    token: str = ""
    user: Optional[Identity] = None

    def __post_init__(self):
        if bool(self.token) != (self.user is not None):
            raise ValueError("token and user must be set or cleared together")

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)


EMPTY_SESSION = Session()


@dataclass(frozen=True)
class SearchMatch:
    """Render-ready projection of one unified-search row."""

    trip: Any  # routelink.api.schemas.Trip
    score: Optional[float] = None
    matched_by: MatchedBy = MatchedBy.UNKNOWN


# ── State machine helpers ─────────────────────────────────────────────


def check_booking_transition(
    current: BookingStatus, new_status: BookingStatus
) -> None:
    """Raise if *current* -> *new_status* is not a legal booking edge."""
    if new_status not in BOOKING_TRANSITIONS.get(current, set()):
        raise InvalidStateTransition(
            f"Cannot transition booking from {current.value} to {new_status.value}"
        )


def check_trip_transition(current: TripStatus, new_status: TripStatus) -> None:
    """Raise if the driver may not move a trip from *current* to *new_status*."""
    if new_status not in TRIP_TRANSITIONS.get(current, set()):
        raise InvalidStateTransition(
            f"Cannot transition trip from {current.value} to {new_status.value}"
        )


# ── Derived predicates ────────────────────────────────────────────────


def can_respond(booking) -> bool:
    """Driver may confirm or decline."""
    return BookingStatus.CONFIRMED in BOOKING_TRANSITIONS[booking.status]


def can_cancel(booking) -> bool:
    """Rider may cancel (REQUESTED or CONFIRMED)."""
    return BookingStatus.CANCELLED in BOOKING_TRANSITIONS[booking.status]


def is_rateable(booking, trip) -> bool:
    """A booking may be rated once it is CONFIRMED and its trip is CLOSED."""
    if trip is None:
        return False
    return (
        booking.status == BookingStatus.CONFIRMED
        and trip.status == TripStatus.CLOSED
    )


def seats_label(trip) -> str:
    return f"{trip.seats_left}/{trip.seats_total} seats left"
