"""Exception hierarchy shared by every layer of the client."""

from __future__ import annotations

from typing import Optional


class RouteLinkError(Exception):
    """Base class for all client errors."""


class ApiError(RouteLinkError):
    """Normalized failure of a backend call.

    ``status`` is ``None`` when the request never produced an HTTP response
    (connection refused, timeout, undecodable body).
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code

    @property
    def is_auth_error(self) -> bool:
        return self.status in (401, 403)

    @property
    def is_transport_error(self) -> bool:
        return self.status is None

    def __repr__(self) -> str:
        return f"ApiError(status={self.status!r}, message={self.message!r})"


class ValidationError(RouteLinkError):
    """Raised before any request when local input is unusable."""


class LocationNotFound(ValidationError):
    """Geocoding yielded nothing for one endpoint of a search."""

    def __init__(self, endpoint: str):
        super().__init__(f"Could not locate {endpoint.capitalize()}")
        self.endpoint = endpoint


class InvalidStateTransition(RouteLinkError):
    """Raised when a status change violates the state machine."""


class ResourceLoadError(RouteLinkError):
    """Raised when a one-time external dependency fails to load."""


class ActionInProgress(RouteLinkError):
    """A guarded action on the same entity is still outstanding."""
