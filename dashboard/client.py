"""
Async client for the gateway's ``/api/*`` endpoints.

Used by the pollers. A non-2xx answer becomes a FetchError whose message is
the ``error`` field of the gateway's envelope when present, otherwise
``Request failed with status N``. Transport failures become FetchError too;
nothing is retried here, the next poll tick is the retry.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Tuple

import httpx

from core.exceptions import FetchError
from dashboard.feeds import FeedQuery
from dashboard.models import (
    MarketEvent,
    StatsResponse,
    StrategySummary,
    StreamLagSnapshot,
    parse_market_events,
    parse_strategies,
)

logger = logging.getLogger(__name__)


class DashboardClient:
    """Fetches and parses dashboard payloads from the gateway."""

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Cache-Control": "no-store"},
            transport=transport,
        )

    async def fetch_json(self, path: str, params: Optional[Mapping[str, str]] = None) -> Any:
        try:
            resp = await self._client.get(path, params=params)
        except httpx.HTTPError as e:
            logger.error(f"GET {path} failed: {e}")
            raise FetchError(f"Request to {path} failed: {e}", context={"path": path}, cause=e) from e

        try:
            data = resp.json()
        except ValueError:
            data = None

        if resp.is_error:
            message = None
            if isinstance(data, dict) and isinstance(data.get("error"), str):
                message = data["error"]
            logger.error(f"API error for {path}: {resp.status_code} {data}")
            raise FetchError(
                message or f"Request failed with status {resp.status_code}",
                status=resp.status_code,
                context={"path": path},
            )

        if data is None:
            raise FetchError(f"Invalid JSON from {path}", status=resp.status_code, context={"path": path})
        return data

    async def stats(self) -> StatsResponse:
        return StatsResponse.from_dict(await self.fetch_json("/api/stats"))

    async def stream_lag(self) -> StreamLagSnapshot:
        return StreamLagSnapshot.from_dict(await self.fetch_json("/api/stream-lag"))

    async def strategies(self) -> Tuple[StrategySummary, ...]:
        return parse_strategies(await self.fetch_json("/api/strategies"))

    async def market_events(self, query: FeedQuery) -> Tuple[MarketEvent, ...]:
        return parse_market_events(await self.fetch_json("/api/market-events", params=query.params()))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "DashboardClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
