"""
Single-flight loader for one-time external dependencies.

Each registered key owns one slot holding nothing, an in-flight task, or a
completed marker:

* loaded            -> ``load()`` returns immediately
* in flight         -> every caller awaits the same task
* unstarted/failed  -> a new task is created and stored in the slot before
  the caller first suspends, so callers racing in the same loop tick still
  find it

A failed load clears the slot (next call retries) and its exception is
raised to every caller that was waiting on it.  Cancelling one waiter does
not cancel the shared load.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from routelink.domain.errors import ResourceLoadError

logger = logging.getLogger(__name__)

Initializer = Callable[[], Awaitable[None]]


class LoadState(str, enum.Enum):
    UNSTARTED = "UNSTARTED"
    LOADING = "LOADING"
    LOADED = "LOADED"
    FAILED = "FAILED"


@dataclass
class _Slot:
    init: Initializer
    is_ready: Optional[Callable[[], bool]] = None
    task: Optional[asyncio.Task] = None
    loaded: bool = False
    failed: bool = False


class ResourceLoader:
    def __init__(self):
        self._slots: dict[str, _Slot] = {}

    def register(
        self,
        key: str,
        init: Initializer,
        is_ready: Optional[Callable[[], bool]] = None,
    ) -> None:
        """Declare how *key* is loaded. Re-registering resets the slot."""
        self._slots[key] = _Slot(init=init, is_ready=is_ready)

    def state(self, key: str) -> LoadState:
        slot = self._slot(key)
        if slot.loaded or (slot.is_ready is not None and slot.is_ready()):
            return LoadState.LOADED
        if slot.task is not None:
            return LoadState.LOADING
        if slot.failed:
            return LoadState.FAILED
        return LoadState.UNSTARTED

    def reset(self, key: str) -> None:
        """Forget a completed or failed load so the next call starts over."""
        slot = self._slot(key)
        if slot.task is not None and not slot.task.done():
            raise RuntimeError(f"Cannot reset {key!r} while it is loading")
        slot.task = None
        slot.loaded = False
        slot.failed = False

    async def load(self, key: str) -> None:
        slot = self._slot(key)

        # already usable?
        if slot.loaded or (slot.is_ready is not None and slot.is_ready()):
            slot.loaded = True
            return

        # currently loading?  Otherwise start -- no await before the slot is set.
        if slot.task is None:
            slot.failed = False
            slot.task = asyncio.ensure_future(self._run(key, slot))

        await asyncio.shield(slot.task)

    async def _run(self, key: str, slot: _Slot) -> None:
        logger.debug("Loading resource %s", key)
        try:
            await slot.init()
        except Exception as exc:
            slot.task = None
            slot.failed = True
            logger.warning("Resource %s failed to load: %s", key, exc)
            if isinstance(exc, ResourceLoadError):
                raise
            raise ResourceLoadError(f"Failed to load {key}: {exc}") from exc
        slot.loaded = True
        slot.task = None
        logger.info("Resource %s loaded", key)

    def _slot(self, key: str) -> _Slot:
        try:
            return self._slots[key]
        except KeyError:
            raise KeyError(f"No loader registered for {key!r}") from None
