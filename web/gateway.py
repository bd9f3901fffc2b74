"""
Proxy Gateway to the upstream data-plane API.

Forwards dashboard reads to the upstream with the static API key attached as
a header, applies default query parameters, and normalizes failures into
JSON envelopes so that no raw exception ever reaches the caller:

- upstream non-2xx  -> same status, ``{"error": "API error: <reason>", "body": <text>}``
- transport / JSON  -> 500, ``{"error": "Failed to fetch <what>", "details": <str>}``

Nothing is cached and nothing is retried; the dashboard's next poll is the
retry.
"""
from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

import requests

from config.gateway import GatewayConfig
from core.exceptions import UpstreamHTTPError, UpstreamTransportError
from core.http_client import HTTPClient
from core.structured_log import jlog

QueryParams = Union[Mapping[str, str], Iterable[Tuple[str, str]]]

MARKET_EVENT_DEFAULTS: Dict[str, str] = {"hours": "0", "limit": "20"}


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"Number out of range: {text}")
    return value


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-finite number: {name}")


def parse_upstream_json(text: str) -> Any:
    """Decode an upstream body; NaN and out-of-range numbers cannot be re-encoded, so they fail here."""
    return json.loads(text, parse_float=_finite_float, parse_constant=_reject_constant)


@dataclass(frozen=True)
class ProxyResponse:
    status: int
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def merge_params(supplied: Optional[QueryParams], defaults: Mapping[str, str]) -> Dict[str, str]:
    """
    Copy caller params verbatim, then fill in defaults the caller omitted.

    Repeated keys collapse to the last value.
    """
    items = supplied.items() if isinstance(supplied, Mapping) else (supplied or ())
    params: Dict[str, str] = {}
    for key, value in items:
        params[key] = value
    for key, value in defaults.items():
        params.setdefault(key, value)
    return params


class ProxyGateway:
    """Read-only passthrough for the dashboard endpoints."""

    def __init__(self, config: GatewayConfig, client: Optional[HTTPClient] = None):
        self.config = config
        self.client = client or HTTPClient(timeout=config.timeout_sec)

    def _fetch(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        url = self.config.upstream_url(path)
        try:
            resp = self.client.get(
                url,
                params=params,
                headers=self.config.auth_headers(),
                timeout=self.config.timeout_sec,
            )
        except requests.exceptions.RequestException as e:
            raise UpstreamTransportError(str(e), context={"path": path}, cause=e) from e

        text = resp.text
        if not resp.ok:
            raise UpstreamHTTPError(resp.status_code, resp.reason or "", text)

        try:
            return parse_upstream_json(text)
        except ValueError as e:
            raise UpstreamTransportError(str(e), context={"path": path}, cause=e) from e

    def forward(self, path: str, what: str, params: Optional[Dict[str, str]] = None) -> ProxyResponse:
        """Fetch ``path`` upstream and wrap the outcome in a ProxyResponse."""
        try:
            data = self._fetch(path, params)
        except UpstreamHTTPError as e:
            jlog("upstream_http_error", level="WARNING", path=path, status=e.status, reason=e.reason)
            return ProxyResponse(e.status, {"error": e.message, "body": e.body})
        except UpstreamTransportError as e:
            jlog("upstream_transport_error", level="ERROR", path=path, error_code=e.error_code, error=e.message)
            return ProxyResponse(500, {"error": f"Failed to fetch {what}", "details": e.message})
        return ProxyResponse(200, data)

    # ------------------------------------------------------------------ #
    # Endpoints
    # ------------------------------------------------------------------ #

    def market_events(self, params: Optional[QueryParams] = None) -> ProxyResponse:
        return self.forward(
            "/api/market-events",
            "market events",
            merge_params(params, MARKET_EVENT_DEFAULTS),
        )

    def stream_lag(self) -> ProxyResponse:
        return self.forward("/api/stream-lag", "stream lag")

    def stats(self) -> ProxyResponse:
        return self.forward("/api/stats", "stats")

    def strategies(self) -> ProxyResponse:
        return self.forward("/api/strategies", "strategies")

    def close(self) -> None:
        self.client.close()
