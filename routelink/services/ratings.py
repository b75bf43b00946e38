"""Post-trip feedback: POST /api/ratings."""

from __future__ import annotations

from typing import Any, Optional

from routelink.api.gateway import ApiGateway
from routelink.api.schemas import RatingRequest
from routelink.domain.errors import ValidationError


class RatingClient:
    def __init__(self, gateway: ApiGateway):
        self.gateway = gateway

    async def rate(self, booking_id: int, stars: int, comment: Optional[str] = None) -> Any:
        if isinstance(stars, bool) or not isinstance(stars, int) or not 1 <= stars <= 5:
            raise ValidationError("stars must be a whole number between 1 and 5")
        comment = comment.strip() if comment else None
        return await self.gateway.post(
            "/api/ratings",
            RatingRequest(booking_id=booking_id, stars=stars, comment=comment or None),
        )
