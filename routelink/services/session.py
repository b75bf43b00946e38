"""
Session Store
=============

Process-wide authentication state (token + identity), persisted through a
``SessionStorage`` backend.  This class is the only writer of the persisted
copy; everything else reads through ``get_session()``.

* ``get_session()`` is synchronous.  The persisted record is read on first
  access, memory is used afterwards.
* ``set_session()`` / ``clear_session()`` write token and identity in one
  storage call, update memory, bump ``version`` and notify subscribers.
* ``validate_in_background()`` starts a detached ``/auth/me`` check.  A
  rejected token logs the user out, unless the session changed (login,
  logout) while the check was in flight.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Callable, Optional

from routelink.domain.entities import EMPTY_SESSION, Identity, Session
from routelink.domain.errors import ApiError
from routelink.infrastructure.storage import IDENTITY_KEY, TOKEN_KEY, SessionStorage

logger = logging.getLogger(__name__)

Subscriber = Callable[[Session], None]


class SessionStore:
    def __init__(self, storage: SessionStorage):
        self.storage = storage
        self._session: Optional[Session] = None  # None until hydrated
        self._version = 0
        self._subscribers: list[Subscriber] = []
        self._validation: Optional[asyncio.Task] = None

    @property
    def version(self) -> int:
        """Monotonic counter bumped on every set/clear."""
        return self._version

    # ── Read ──────────────────────────────────────────────────────

    def get_session(self) -> Session:
        if self._session is None:
            self._session = self._hydrate()
        return self._session

    def _hydrate(self) -> Session:
        record = self.storage.read()
        token = record.get(TOKEN_KEY) or ""
        raw_identity = record.get(IDENTITY_KEY)
        if not token and not raw_identity:
            return EMPTY_SESSION
        try:
            if not token or not raw_identity:
                raise ValueError("partial session record")
            return Session(token=token, user=Identity.from_record(json.loads(raw_identity)))
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Discarding persisted session: %s", exc)
            self.storage.remove()
            return EMPTY_SESSION

    # ── Write ─────────────────────────────────────────────────────

    def set_session(self, token: str, identity: Identity) -> Session:
        if not token:
            raise ValueError("token must not be empty")
        session = Session(token=token, user=identity)
        self.storage.write(token, json.dumps(identity.as_record()))
        self._replace(session)
        logger.info("Session started for user %s (%s)", identity.id, identity.role.value)
        return session

    def clear_session(self) -> None:
        self.storage.remove()
        self._replace(EMPTY_SESSION)
        logger.info("Session cleared")

    def _replace(self, session: Session) -> None:
        self._session = session
        self._version += 1
        for callback in list(self._subscribers):
            try:
                callback(session)
            except Exception:
                logger.exception("Session subscriber failed")

    # ── Subscribe ─────────────────────────────────────────────────

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback*; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # ── Background validation ─────────────────────────────────────

    def validate_in_background(self, gateway) -> Optional[asyncio.Task]:
        """Fire-and-forget token check; returns the task (or None if logged out).

        A check already in flight is reused rather than duplicated.
        """
        session = self.get_session()
        if not session.token:
            return None
        if self._validation is not None and not self._validation.done():
            return self._validation
        self._validation = asyncio.create_task(
            self._validate(gateway, self._version), name="session-validation"
        )
        return self._validation

    async def _validate(self, gateway, started_at: int) -> None:
        try:
            await gateway.get("/auth/me")
        except ApiError as exc:
            if exc.is_transport_error:
                # Backend unreachable: the token may still be good.
                logger.info("Session validation skipped: %s", exc.message)
                return
            if self._version != started_at:
                logger.debug("Stale validation failure ignored")
                return
            logger.info("Stored session rejected (%s) -- logging out", exc.status)
            self.clear_session()
        else:
            logger.debug("Stored session is valid")

    async def stop_validation(self) -> None:
        task, self._validation = self._validation, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
