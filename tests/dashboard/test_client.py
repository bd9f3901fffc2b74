"""
Tests for dashboard/client.py - gateway fetches over a mock transport.
"""
from __future__ import annotations

import asyncio

import httpx
import pytest

from core.exceptions import FetchError, PayloadError
from dashboard.client import DashboardClient
from dashboard.feeds import default_queries, EventTab


def _run(handler, call):
    """Run ``call(client)`` against a client whose transport is ``handler``."""
    async def scenario():
        async with DashboardClient("http://gateway.test/", transport=httpx.MockTransport(handler)) as client:
            return await call(client)
    return asyncio.run(scenario())


class TestDashboardClient:
    def test_market_events_sends_query_shape(self, sample_market_events):
        seen = {}

        def handler(request: httpx.Request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["cache"] = request.headers.get("cache-control")
            return httpx.Response(200, json=sample_market_events)

        query = default_queries()[EventTab.PRICE_JUMP]
        events = _run(handler, lambda c: c.market_events(query))

        assert seen["path"] == "/api/market-events"
        assert seen["params"] == {"type": "state_extreme", "min_ret": "0.05", "limit": "20", "hours": "0"}
        assert seen["cache"] == "no-store"
        assert len(events) == 3
        assert events[0].metadata.ret_1m == 0.1

    def test_stats_and_lag(self, sample_stats):
        def handler(request):
            if request.url.path == "/api/stats":
                return httpx.Response(200, json=sample_stats)
            return httpx.Response(200, json={"quotes_lag_sec": 2.5, "trades_lag_sec": None})

        stats = _run(handler, lambda c: c.stats())
        lag = _run(handler, lambda c: c.stream_lag())

        assert stats.is_valid
        assert stats.active_markets == 1234
        assert lag.quotes_lag_sec == 2.5
        assert lag.trades_lag_sec is None

    def test_error_envelope_message(self):
        def handler(request):
            return httpx.Response(503, json={"error": "API error: Service Unavailable", "body": ""})

        with pytest.raises(FetchError) as exc_info:
            _run(handler, lambda c: c.strategies())

        assert exc_info.value.message == "API error: Service Unavailable"
        assert exc_info.value.status == 503

    def test_error_without_envelope(self):
        def handler(request):
            return httpx.Response(502, text="bad gateway")

        with pytest.raises(FetchError, match="Request failed with status 502"):
            _run(handler, lambda c: c.stats())

    def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(FetchError) as exc_info:
            _run(handler, lambda c: c.stream_lag())
        assert exc_info.value.status is None

    def test_invalid_json_on_success(self):
        def handler(request):
            return httpx.Response(200, text="<html>")

        with pytest.raises(FetchError, match="Invalid JSON"):
            _run(handler, lambda c: c.stats())

    def test_wrong_shape_is_payload_error(self):
        def handler(request):
            return httpx.Response(200, json={"strategies": []})

        with pytest.raises(PayloadError):
            _run(handler, lambda c: c.strategies())
