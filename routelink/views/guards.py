"""
Helpers shared by the page view-models.

* ``PendingActions`` -- keyed in-flight guard.  While a mutating call on an
  entity is outstanding, a second action on the *same* key is refused;
  other keys are unaffected.
* ``Liveness`` -- flag a view captures when an async operation starts and
  checks before applying the result; closed when the view goes away.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Hashable

from routelink.domain.errors import ActionInProgress, ApiError, RouteLinkError

RELOGIN_MESSAGE = "Your session has expired or lacks permission. Please log in again."


class PendingActions:
    def __init__(self):
        self._keys: set[Hashable] = set()

    def is_pending(self, key: Hashable) -> bool:
        return key in self._keys

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        if key in self._keys:
            raise ActionInProgress(f"Action already in progress for {key!r}")
        self._keys.add(key)
        try:
            yield
        finally:
            self._keys.discard(key)


class Liveness:
    def __init__(self):
        self.alive = True

    def close(self) -> None:
        self.alive = False


def describe_error(exc: RouteLinkError, fallback: str) -> str:
    """User-facing message; auth failures get a re-login prompt."""
    if isinstance(exc, ApiError):
        if exc.is_auth_error:
            return RELOGIN_MESSAGE
        return exc.message or fallback
    return str(exc) or fallback
