"""
API Gateway
===========

The one seam between the client and the RouteLink backend.

* Attaches ``Authorization: Bearer <token>`` whenever the session has one.
* Sends bodies as JSON and query params with ``None`` values dropped.
* Normalizes every failure -- transport errors, non-2xx statuses, bodies
  that do not decode or do not match the expected schema -- into
  ``ApiError``.  Nothing from httpx or pydantic escapes this module.
* Returns ``NO_CONTENT`` for 204 / empty responses instead of parsing JSON.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Mapping, Optional, Protocol

import httpx
import pydantic
from pydantic import BaseModel, TypeAdapter

from routelink.domain.entities import Session
from routelink.domain.errors import ApiError

logger = logging.getLogger(__name__)

_MESSAGE_FIELDS = ("message", "error", "detail")


class _NoContent:
    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_CONTENT"


NO_CONTENT: Any = _NoContent()


class SessionSource(Protocol):
    def get_session(self) -> Session: ...


@lru_cache(maxsize=None)
def _adapter(model: Any) -> TypeAdapter:
    return TypeAdapter(model)


def _query(params: Any) -> Optional[dict[str, str]]:
    if params is None:
        return None
    if isinstance(params, BaseModel):
        params = params.model_dump(by_alias=True, mode="json", exclude_none=True)
    out: dict[str, str] = {}
    for k, v in params.items():
        if v is None:
            continue
        if isinstance(v, bool):
            out[k] = "true" if v else "false"
        else:
            out[k] = str(v)
    return out


def error_message(resp: httpx.Response) -> tuple[str, Optional[str]]:
    """Extract ``(message, code)`` from an error response."""
    text = resp.text.strip() if resp.content else ""
    code: Optional[str] = None
    try:
        data = resp.json() if text else None
    except ValueError:
        data = None
    if isinstance(data, dict):
        raw_code = data.get("code")
        code = str(raw_code) if raw_code is not None else None
        for field in _MESSAGE_FIELDS:
            value = data.get(field)
            if isinstance(value, str) and value.strip():
                return value.strip(), code
    return text or f"HTTP {resp.status_code}", code


class ApiGateway:
    def __init__(
        self,
        base_url: str,
        session: SessionSource,
        *,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Optional[Mapping[str, Any] | BaseModel] = None,
        *,
        response_model: Any = None,
    ) -> Any:
        """Issue a call and return the decoded (optionally validated) body."""
        headers: dict[str, str] = {}
        token = self.session.get_session().token
        if token:
            headers["Authorization"] = f"Bearer {token}"

        if isinstance(body, BaseModel):
            body = body.model_dump(by_alias=True, mode="json", exclude_none=True)

        if self._client.is_closed:
            raise ApiError(f"Network error: client closed before {method} {path}")
        try:
            resp = await self._client.request(
                method,
                path,
                json=body,
                params=_query(params),
                headers=headers,
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ApiError(f"Network error: {exc}") from exc

        logger.debug("%s %s -> %d", method, path, resp.status_code)

        if resp.is_error:
            message, code = error_message(resp)
            raise ApiError(message, status=resp.status_code, code=code)

        if resp.status_code == 204 or not resp.content:
            return NO_CONTENT

        try:
            data = resp.json()
        except ValueError as exc:
            raise ApiError(
                f"Invalid JSON in response to {method} {path}",
                status=resp.status_code,
            ) from exc

        if response_model is None:
            return data
        adapter = response_model if isinstance(response_model, TypeAdapter) else _adapter(response_model)
        try:
            return adapter.validate_python(data)
        except pydantic.ValidationError as exc:
            raise ApiError(
                f"Unexpected response to {method} {path}: {exc.error_count()} invalid field(s)",
                status=resp.status_code,
            ) from exc

    async def get(self, path: str, params: Any = None, **kw: Any) -> Any:
        return await self.request("GET", path, params=params, **kw)

    async def post(self, path: str, body: Any = None, params: Any = None, **kw: Any) -> Any:
        return await self.request("POST", path, body, params, **kw)

    async def put(self, path: str, body: Any = None, params: Any = None, **kw: Any) -> Any:
        return await self.request("PUT", path, body, params, **kw)

    async def delete(self, path: str, params: Any = None, **kw: Any) -> Any:
        return await self.request("DELETE", path, params=params, **kw)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()
