"""
PostgREST-style HTTP adapter for the hosted store.

Talks to ``{url}/rest/v1/{table}`` with httpx and maps every transport or
status failure onto the sync error taxonomy so the retry executor can
classify it.

Status mapping:
    - timeout                 -> RequestTimeoutError (transient)
    - other transport errors  -> NetworkError (transient)
    - 429                     -> RateLimitedError (transient)
    - 5xx                     -> ServerError (transient)
    - 401, 403                -> UnauthorizedError
    - 404                     -> NotFoundError
    - 400, 409, 422           -> ValidationError
    - other 4xx               -> HttpStatusError

Invariants:
    - Every request filters on ``user_id=eq.<owner>``
    - Writes ask for ``Prefer: return=representation`` so the canonical row
      comes back in the same round trip
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import StoreSettings
from ..errors import (
    HttpStatusError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    RequestTimeoutError,
    ServerError,
    SyncError,
    UnauthorizedError,
    ValidationError,
)
from .base import ListQuery, Row

logger = logging.getLogger(__name__)


def _eq(value: Any) -> str:
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    if value is None:
        return "is.null"
    return f"eq.{value}"


def error_for_response(response: httpx.Response, table: str, record_id: str = "") -> SyncError:
    """Translate a non-2xx response into a sync error."""
    status = response.status_code
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error") or response.text
    else:
        message = response.text
    message = f"{table}: HTTP {status}: {message}"

    if status == 429:
        retry_after = response.headers.get("Retry-After")
        try:
            seconds = float(retry_after) if retry_after else None
        except ValueError:
            seconds = None
        return RateLimitedError(message, retry_after=seconds)
    if status >= 500:
        return ServerError(message, status=status)
    if status in (401, 403):
        return UnauthorizedError(message, status=status)
    if status == 404:
        return NotFoundError(message, table, record_id)
    if status in (400, 409, 422):
        return ValidationError(message)
    return HttpStatusError(message, status=status)


class RestPersistence:
    """PersistenceApi over a PostgREST-compatible HTTP endpoint.

    Example:
        >>> async with RestPersistence(StoreSettings(url="https://db.example", api_key="...")) as api:
        ...     rows = await api.list("task_pool", "user-1")
    """

    def __init__(
        self,
        settings: StoreSettings,
        access_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            settings: Store endpoint and key
            access_token: The signed-in owner's bearer token (defaults to the API key)
            client: Preconfigured client (tests pass one with a MockTransport)
        """
        self.settings = settings
        headers = {
            "apikey": settings.api_key,
            "Authorization": f"Bearer {access_token or settings.api_key}",
            "Accept-Profile": settings.schema_name,
            "Content-Profile": settings.schema_name,
        }
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=settings.url.rstrip("/"),
            timeout=settings.timeout_seconds,
        )
        self._headers = headers

    async def __aenter__(self) -> RestPersistence:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def insert(self, table: str, owner_id: str, row: Row) -> Row:
        body = dict(row)
        body["user_id"] = owner_id
        response = await self._request(
            "POST",
            table,
            json=body,
            headers={"Prefer": "return=representation"},
        )
        return self._single(response, table)

    async def update(self, table: str, record_id: str, owner_id: str, patch: Row) -> Row:
        response = await self._request(
            "PATCH",
            table,
            params={"id": _eq(record_id), "user_id": _eq(owner_id), "select": "*"},
            json=patch,
            headers={"Prefer": "return=representation"},
            record_id=record_id,
        )
        return self._single(response, table, record_id)

    async def delete(self, table: str, record_id: str, owner_id: str) -> None:
        await self._request(
            "DELETE",
            table,
            params={"id": _eq(record_id), "user_id": _eq(owner_id)},
            record_id=record_id,
        )

    async def list(self, table: str, owner_id: str, query: ListQuery | None = None) -> List[Row]:
        query = query or ListQuery()
        params: Dict[str, str] = {"select": "*", "user_id": _eq(owner_id)}
        for column, value in query.filters.items():
            params[column] = _eq(value)
        if query.order_by:
            params["order"] = ",".join(
                f"{column}.{'asc' if ascending else 'desc'}" for column, ascending in query.order_by
            )
        response = await self._request("GET", table, params=params)
        data = response.json()
        if not isinstance(data, list):
            raise ValidationError(f"{table}: expected a list of rows")
        return data

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
        record_id: str = "",
    ) -> httpx.Response:
        url = f"/rest/v1/{table}"
        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                json=json,
                headers={**self._headers, **(headers or {})},
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"{method} {table} timed out: {e}", url=url) from e
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {table} failed: {e}", url=url) from e

        if response.is_success:
            return response

        error = error_for_response(response, table, record_id)
        logger.debug(
            f"{method} {table} rejected",
            extra={"status": response.status_code, "code": error.code},
        )
        raise error

    def _single(self, response: httpx.Response, table: str, record_id: str = "") -> Row:
        data = response.json()
        if isinstance(data, list):
            if not data:
                # PostgREST answers 200 [] when the filters matched nothing
                raise NotFoundError(f"{table} row not found: {record_id}", table, record_id)
            data = data[0]
        if not isinstance(data, dict):
            raise ValidationError(f"{table}: expected a row object")
        return data
