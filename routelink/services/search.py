"""
Unified Search Aggregator
=========================

POST /api/trips/search-unified returns a list whose elements are either
scored match records (``{trip, score, matchedBy}``) or bare trips,
depending on which matching strategy produced them.  The gateway parses
each element into the ``SearchRow`` tagged variant; this module projects
both variants onto ``SearchMatch``, keeping the backend's order.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from routelink.api.gateway import ApiGateway
from routelink.api.schemas import ScoredTrip, Trip, UnifiedSearchRequest, search_rows_adapter
from routelink.domain.entities import SearchMatch
from routelink.domain.enums import MatchedBy
from routelink.domain.errors import LocationNotFound, ValidationError
from routelink.infrastructure.geocoding import Coordinates, Geocoder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaceQuery:
    """Free text plus coordinates when the user picked a suggestion."""

    text: str
    lat: Optional[float] = None
    lng: Optional[float] = None

    @property
    def coordinates(self) -> Optional[Coordinates]:
        if self.lat is None or self.lng is None:
            return None
        if self.lat == 0 and self.lng == 0:  # unset picker
            return None
        return self.lat, self.lng


def normalize_rows(rows: Iterable[ScoredTrip | Trip]) -> list[SearchMatch]:
    """Project scored and bare rows onto ``SearchMatch`` in input order."""
    out: list[SearchMatch] = []
    for row in rows:
        if isinstance(row, ScoredTrip):
            out.append(
                SearchMatch(
                    trip=row.trip,
                    score=row.score,
                    matched_by=row.matched_by or MatchedBy.UNKNOWN,
                )
            )
        else:
            out.append(SearchMatch(trip=row))
    return out


class UnifiedSearch:
    def __init__(self, gateway: ApiGateway, geocoder: Optional[Geocoder] = None):
        self.gateway = gateway
        self.geocoder = geocoder

    async def _resolve(self, place: PlaceQuery, endpoint: str) -> Coordinates:
        coords = place.coordinates
        if coords is not None:
            return coords
        if self.geocoder is not None:
            coords = await self.geocoder.geocode(place.text)
        if coords is None:
            raise LocationNotFound(endpoint)
        return coords

    async def search(
        self,
        start: PlaceQuery,
        end: PlaceQuery,
        date: dt.date,
        seats: int = 1,
    ) -> list[SearchMatch]:
        start_text, end_text = start.text.strip(), end.text.strip()
        if not start_text or not end_text:
            raise ValidationError("Please enter Start and End")
        if isinstance(seats, bool) or not isinstance(seats, int) or seats < 1:
            raise ValidationError("seats must be a whole number of at least 1")

        start_lat, start_lng = await self._resolve(start, "start")
        end_lat, end_lng = await self._resolve(end, "end")

        body = UnifiedSearchRequest(
            start_text=start_text,
            end_text=end_text,
            start_lat=start_lat,
            start_lng=start_lng,
            end_lat=end_lat,
            end_lng=end_lng,
            seats=seats,
            date=date,
        )
        rows = await self.gateway.post(
            "/api/trips/search-unified", body, response_model=search_rows_adapter
        )
        matches = normalize_rows(rows or [])
        logger.debug("Unified search returned %d match(es)", len(matches))
        return matches
