"""HTTP and WebSocket collaborators for the dashboard view model."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aiohttp
from pydantic import ValidationError as PydanticValidationError

from binwatch.exceptions import TransportError
from binwatch.models.schemas import BinRecord

LOGGER = logging.getLogger(__name__)


class BinApiClient:
    """REST access to the bin store over the binwatch API."""

    def __init__(
        self,
        api_base: str,
        http_session: aiohttp.ClientSession,
        *,
        timeout_s: float = 5.0,
    ) -> None:
        self._api_base = api_base.rstrip("/")
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout_s)

    async def _request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        url = f"{self._api_base}{path}"
        try:
            async with self._http.request(method, url, json=payload, timeout=self._timeout) as response:
                try:
                    body = await response.json(content_type=None)
                except ValueError:
                    body = None
                status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"{method} {url} failed: {exc}", url=url) from exc

        if not isinstance(body, dict):
            raise TransportError(f"{method} {url} returned a non-object body", status_code=status, url=url)
        if status != 200 or not body.get("success"):
            detail = body.get("error") or f"HTTP {status}"
            raise TransportError(f"{method} {url} failed: {detail}", status_code=status, url=url)
        return body

    async def fetch_bins(self) -> list[BinRecord]:
        body = await self._request("GET", "/api/bins")
        items = body.get("data")
        if not isinstance(items, list):
            raise TransportError("Bin list payload has no data array", url=f"{self._api_base}/api/bins")
        try:
            return [BinRecord.model_validate(item) for item in items]
        except PydanticValidationError as exc:
            raise TransportError(f"Malformed bin record: {exc}", url=f"{self._api_base}/api/bins") from exc

    async def post_reading(
        self,
        bin_type: str,
        distance_cm: float,
        bin_height_cm: float | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"bin_type": bin_type, "distance_cm": distance_cm}
        if bin_height_cm is not None:
            payload["bin_height_cm"] = bin_height_cm
        return await self._request("POST", "/api/bins", payload)


class WebSocketChangeFeed:
    """Subscription to the `/ws/bins` change stream.

    Each text frame is one change event. The stream ending, or a socket error,
    surfaces as `TransportError` to the consumer.
    """

    def __init__(self, ws_url: str, http_session: aiohttp.ClientSession, *, heartbeat_s: float = 30.0) -> None:
        self._ws_url = ws_url
        self._http = http_session
        self._heartbeat_s = heartbeat_s

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[AsyncIterator[dict[str, Any]]]:
        try:
            ws = await self._http.ws_connect(self._ws_url, heartbeat=self._heartbeat_s)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"Could not subscribe to {self._ws_url}: {exc}", url=self._ws_url) from exc

        LOGGER.info("Subscribed to bin changes at %s", self._ws_url)
        try:
            yield self._events(ws)
        finally:
            await ws.close()
            LOGGER.info("Unsubscribed from %s", self._ws_url)

    async def _events(self, ws: aiohttp.ClientWebSocketResponse) -> AsyncIterator[dict[str, Any]]:
        async for message in ws:
            if message.type == aiohttp.WSMsgType.TEXT:
                try:
                    event = json.loads(message.data)
                except ValueError:
                    event = {"raw": message.data}
                yield event if isinstance(event, dict) else {"data": event}
            elif message.type == aiohttp.WSMsgType.ERROR:
                raise TransportError(f"Change feed error: {ws.exception()}", url=self._ws_url)
        raise TransportError("Change feed closed by server", url=self._ws_url)
