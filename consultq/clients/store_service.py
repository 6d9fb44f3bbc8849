from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from consultq.services.exceptions import DownstreamServiceError

logger = logging.getLogger(__name__)

# Answers the records backend gives when a changeset carries an old version.
VERSION_CONFLICT_STATUSES = (409, 412)


class StoreServiceClient:
    """JSON transport for the records backend that owns doctors, sessions and appointments.

    The backend contract is small. Single records are read with
    ``GET /<collection>/<id>`` and a 404 means the record does not exist.
    Collections are read with ``GET /<collection>?<filters>`` and come back
    wrapped as ``{"items": [...]}``. Every write is one ``POST /commit``
    carrying a versioned changeset, which the backend applies whole or
    rejects with 409/412 when any record's version moved on.

    With ``use_mock_data`` set (or no ``base_url``) the client never opens a
    connection; the in-memory store is used instead and only
    :meth:`simulate_latency` is called.
    """

    def __init__(
        self,
        base_url: str | None,
        *,
        timeout: float = 10.0,
        use_mock_data: bool = True,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = str(base_url).rstrip("/") if base_url else None
        self._timeout = timeout
        self.use_mock_data = use_mock_data or not self._base_url
        self._headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _connection(self) -> httpx.AsyncClient:
        if self.use_mock_data:
            raise RuntimeError("Records backend requested while running in mock mode")
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers=self._headers,
                transport=self._transport,
            )
        return self._client

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = self._connection()
        try:
            response = await client.request(method, path, **kwargs)
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            # Missing records and version conflicts are ordinary answers.
            if status_code != 404 and status_code not in VERSION_CONFLICT_STATUSES:
                logger.exception("Records backend answered %s %s with %s", method, path, status_code)
            raise DownstreamServiceError(
                "Records service returned an error response",
                status_code=status_code,
                cause=exc,
            ) from exc
        except httpx.RequestError as exc:
            logger.exception("Unable to reach records backend for %s %s: %s", method, path, exc)
            raise DownstreamServiceError(
                "Unable to reach records service", status_code=None, cause=exc
            ) from exc

    async def post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send a write, normally a ``/commit`` changeset; an empty body reads as ``{}``."""

        logger.debug("POST %s payload=%s", path, payload)
        response = await self._send("POST", path, json=payload)
        return response.json() if response.content else {}

    async def get(
        self, path: str, params: Dict[str, Any] | None = None
    ) -> Dict[str, Any]:
        """Read one record or an ``items`` envelope; a 404 surfaces as ``DownstreamServiceError``."""

        response = await self._send("GET", path, params=params)
        return response.json()

    async def simulate_latency(self) -> None:
        """Yield to the event loop once, standing in for a backend round trip in mock mode."""

        await asyncio.sleep(0)
