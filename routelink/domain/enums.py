"""Domain enumerations and state-transition rules."""

import enum


class Role(str, enum.Enum):
    RIDER = "RIDER"
    DRIVER = "DRIVER"


class TripStatus(str, enum.Enum):
    OPEN = "OPEN"
    FULL = "FULL"
    CLOSED = "CLOSED"


class BookingStatus(str, enum.Enum):
    REQUESTED = "REQUESTED"
    CONFIRMED = "CONFIRMED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"


class MatchedBy(str, enum.Enum):
    NEAR = "NEAR"
    ALONG = "ALONG"
    BOTH = "BOTH"
    UNKNOWN = "UNKNOWN"  # bare trip record, no scoring metadata


# State machine: maps current status -> set of valid next statuses
BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.REQUESTED: {
        BookingStatus.CONFIRMED,
        BookingStatus.DECLINED,
        BookingStatus.CANCELLED,
    },
    BookingStatus.CONFIRMED: {BookingStatus.CANCELLED},
    BookingStatus.DECLINED: set(),
    BookingStatus.CANCELLED: set(),
}

# Only the driver-initiated edges; OPEN -> FULL is computed by the server.
TRIP_TRANSITIONS: dict[TripStatus, set[TripStatus]] = {
    TripStatus.OPEN: {TripStatus.CLOSED},
    TripStatus.FULL: {TripStatus.CLOSED},
    TripStatus.CLOSED: {TripStatus.OPEN},
}
