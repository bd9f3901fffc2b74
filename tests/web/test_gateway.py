"""
Tests for web/gateway.py - upstream forwarding and error envelopes.
"""
from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
import requests

from config.gateway import GatewayConfig
from core.structured_log import read_recent_logs
from web.gateway import (
    MARKET_EVENT_DEFAULTS,
    ProxyGateway,
    ProxyResponse,
    merge_params,
    parse_upstream_json,
)


def _response(status=200, body=None, reason="OK", text=None):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.reason = reason
    resp.text = text if text is not None else json.dumps(body)
    return resp


@pytest.fixture
def http():
    return MagicMock()


@pytest.fixture
def gateway(http):
    config = GatewayConfig(
        base_url="https://upstream.test",
        api_key="k-123",
        api_key_header="X-Custom-Key",
        timeout_sec=4,
    )
    return ProxyGateway(config, client=http)


class TestMergeParams:
    """Tests for default query parameter handling."""

    def test_defaults_fill_missing(self):
        assert merge_params({}, MARKET_EVENT_DEFAULTS) == {"hours": "0", "limit": "20"}

    def test_none_means_defaults_only(self):
        assert merge_params(None, {"a": "1"}) == {"a": "1"}

    def test_caller_value_kept(self):
        assert merge_params({"limit": "5"}, MARKET_EVENT_DEFAULTS) == {"limit": "5", "hours": "0"}

    def test_repeated_keys_last_wins(self):
        merged = merge_params([("type", "a"), ("type", "b")], {})
        assert merged == {"type": "b"}

    def test_does_not_mutate_defaults(self):
        merge_params({"hours": "24"}, MARKET_EVENT_DEFAULTS)
        assert MARKET_EVENT_DEFAULTS == {"hours": "0", "limit": "20"}


class TestProxyGateway:
    """Tests for ProxyGateway.forward and its endpoints."""

    def test_success_returns_parsed_body(self, gateway, http):
        http.get.return_value = _response(body={"quotes_lag_sec": 1.5})

        result = gateway.stream_lag()

        assert result == ProxyResponse(200, {"quotes_lag_sec": 1.5})
        assert result.ok

    def test_uses_configured_header_and_timeout(self, gateway, http):
        http.get.return_value = _response(body=[])

        gateway.strategies()

        args, kwargs = http.get.call_args
        assert args[0] == "https://upstream.test/api/strategies"
        assert kwargs["headers"] == {"X-Custom-Key": "k-123"}
        assert kwargs["timeout"] == 4

    def test_market_events_merges_defaults(self, gateway, http):
        http.get.return_value = _response(body=[])

        gateway.market_events({"type": "new_market"})

        assert http.get.call_args[1]["params"] == {
            "type": "new_market",
            "hours": "0",
            "limit": "20",
        }

    def test_http_error_envelope(self, gateway, http):
        http.get.return_value = _response(status=401, reason="Unauthorized", text='{"detail":"bad key"}')

        result = gateway.stats()

        assert result.status == 401
        assert not result.ok
        assert result.body == {"error": "API error: Unauthorized", "body": '{"detail":"bad key"}'}

    def test_transport_error_envelope(self, gateway, http):
        http.get.side_effect = requests.exceptions.ConnectTimeout("timed out")

        result = gateway.strategies()

        assert result.status == 500
        assert result.body["error"] == "Failed to fetch strategies"
        assert "timed out" in result.body["details"]

    def test_invalid_json_envelope(self, gateway, http):
        http.get.return_value = _response(text="not json")

        result = gateway.market_events()

        assert result.status == 500
        assert result.body["error"] == "Failed to fetch market events"

    def test_out_of_range_number_envelope(self, gateway, http):
        http.get.return_value = _response(text='[{"name": "a", "total_pnl": -1e400}]')

        result = gateway.strategies()

        assert result.status == 500
        assert result.body["error"] == "Failed to fetch strategies"
        assert "out of range" in result.body["details"]

    def test_failures_are_logged(self, gateway, http):
        http.get.return_value = _response(status=502, reason="Bad Gateway", text="")
        gateway.stats()
        http.get.side_effect = requests.exceptions.ConnectionError("refused")
        gateway.stats()

        events = [e["event"] for e in read_recent_logs()]
        assert events == ["upstream_http_error", "upstream_transport_error"]

    def test_close_closes_client(self, gateway, http):
        gateway.close()
        http.close.assert_called_once()

    def test_default_client_uses_config_timeout(self):
        config = GatewayConfig(base_url="https://upstream.test", api_key="k", timeout_sec=7)
        gw = ProxyGateway(config)
        try:
            assert gw.client.timeout == 7
        finally:
            gw.close()


class TestParseUpstreamJson:
    """Tests for decoding upstream bodies."""

    def test_regular_numbers(self):
        assert parse_upstream_json('{"a": 1.5, "b": 10, "c": 1e300}') == {"a": 1.5, "b": 10, "c": 1e300}

    def test_large_integers_kept(self):
        assert parse_upstream_json("[" + "9" * 400 + "]") == [int("9" * 400)]

    @pytest.mark.parametrize("text", ["[1e400]", "[-1e999]", "[NaN]", "[Infinity]", "[-Infinity]"])
    def test_non_finite_rejected(self, text):
        with pytest.raises(ValueError):
            parse_upstream_json(text)
