"""
Durable storage for the persisted session record.

The record is two keys, ``token`` and ``me`` (compact identity JSON), the
same layout the browser client kept in ``localStorage``.  Every backend
writes and removes both keys in one atomic step so that a reader never
observes a token without an identity or the reverse:

* ``MemoryStorage`` -- process-local dict, used in tests and throwaway runs.
* ``FileStorage``   -- one JSON document replaced via ``os.replace``.
* ``RedisStorage``  -- two keys written in a MULTI/EXEC pipeline and read
  with a single ``MGET``; lets several client processes share one login.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol

import redis

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
IDENTITY_KEY = "me"


class SessionStorage(Protocol):
    def read(self) -> dict[str, Optional[str]]: ...

    def write(self, token: str, identity_json: str) -> None: ...

    def remove(self) -> None: ...


class MemoryStorage:
    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def read(self) -> dict[str, Optional[str]]:
        return {
            TOKEN_KEY: self._data.get(TOKEN_KEY),
            IDENTITY_KEY: self._data.get(IDENTITY_KEY),
        }

    def write(self, token: str, identity_json: str) -> None:
        self._data = {TOKEN_KEY: token, IDENTITY_KEY: identity_json}

    def remove(self) -> None:
        self._data = {}


class FileStorage:
    def __init__(self, path: str | os.PathLike):
        self.path = Path(path).expanduser()

    def read(self) -> dict[str, Optional[str]]:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {TOKEN_KEY: None, IDENTITY_KEY: None}
        except (OSError, ValueError):
            logger.warning("Unreadable session file %s -- ignoring", self.path)
            return {TOKEN_KEY: None, IDENTITY_KEY: None}
        if not isinstance(raw, dict):
            return {TOKEN_KEY: None, IDENTITY_KEY: None}
        return {TOKEN_KEY: raw.get(TOKEN_KEY), IDENTITY_KEY: raw.get(IDENTITY_KEY)}

    def write(self, token: str, identity_json: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps({TOKEN_KEY: token, IDENTITY_KEY: identity_json})
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".session-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def remove(self) -> None:
        self.path.unlink(missing_ok=True)


class RedisStorage:
    def __init__(self, client: redis.Redis, prefix: str = "routelink:"):
        self.redis = client
        self.token_key = f"{prefix}{TOKEN_KEY}"
        self.identity_key = f"{prefix}{IDENTITY_KEY}"

    @classmethod
    def from_url(cls, url: str, prefix: str = "routelink:") -> "RedisStorage":
        return cls(redis.Redis.from_url(url, decode_responses=True), prefix)

    def read(self) -> dict[str, Optional[str]]:
        token, identity = self.redis.mget(self.token_key, self.identity_key)
        return {TOKEN_KEY: token, IDENTITY_KEY: identity}

    def write(self, token: str, identity_json: str) -> None:
        pipe = self.redis.pipeline(transaction=True)
        pipe.set(self.token_key, token)
        pipe.set(self.identity_key, identity_json)
        pipe.execute()

    def remove(self) -> None:
        self.redis.delete(self.token_key, self.identity_key)


def build_storage(backend: str, *, path: str, redis_url: str, prefix: str) -> SessionStorage:
    """Pick a storage backend by name (``memory``, ``file`` or ``redis``)."""
    if backend == "memory":
        return MemoryStorage()
    if backend == "file":
        return FileStorage(path)
    if backend == "redis":
        return RedisStorage.from_url(redis_url, prefix)
    raise ValueError(f"Unknown session backend: {backend!r}")
