"""
Dashboard Gateway - FastAPI Application
=======================================

Exposes the read endpoints the dashboard polls and forwards them to the
upstream data-plane API through ProxyGateway. Upstream credentials are
loaded once when the app is created; missing credentials abort startup.

Endpoints:
- ``GET /api/market-events`` - forwarded params, defaults ``hours=0``, ``limit=20``
- ``GET /api/stream-lag``    - pure passthrough
- ``GET /api/stats``         - pure passthrough
- ``GET /api/strategies``    - pure passthrough
- ``GET /api/health``        - local liveness, no upstream call

Usage:
    uvicorn web.main:create_app --factory --port 3000
    python -m web --port 3000
"""
from __future__ import annotations

import argparse
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config.gateway import GatewayConfig, load_gateway_config
from config.settings_schema import load_validated_settings
from core.http_client import HTTPClient
from core.structured_log import jlog
from web.gateway import ProxyGateway, ProxyResponse

logger = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store"}


def _respond(result: ProxyResponse) -> JSONResponse:
    return JSONResponse(result.body, status_code=result.status, headers=NO_STORE)


def get_gateway(request: Request) -> ProxyGateway:
    return request.app.state.gateway


def create_app(
    config: Optional[GatewayConfig] = None,
    client: Optional[HTTPClient] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Raises:
        MissingConfigError: If API_BASE_URL or API_KEY is not configured
    """
    if config is None:
        settings = load_validated_settings()
        config = load_gateway_config(
            api_key_header=settings.gateway.api_key_header,
            timeout_sec=settings.gateway.timeout_sec,
        )
    gateway = ProxyGateway(config, client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        jlog("gateway_start", upstream=config.base_url)
        yield
        gateway.close()

    app = FastAPI(
        title="MarketPulse Dashboard Gateway",
        description="Read-only proxy from the dashboard to the trading data-plane API.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.gateway = gateway

    @app.get("/api/market-events")
    def market_events(request: Request):
        """Forward market-event queries; caller params win over defaults."""
        return _respond(get_gateway(request).market_events(request.query_params.multi_items()))

    @app.get("/api/stream-lag")
    def stream_lag(request: Request):
        return _respond(get_gateway(request).stream_lag())

    @app.get("/api/stats")
    def stats(request: Request):
        return _respond(get_gateway(request).stats())

    @app.get("/api/strategies")
    def strategies(request: Request):
        return _respond(get_gateway(request).strategies())

    @app.get("/api/health")
    async def health_check():
        return JSONResponse(
            {"status": "healthy", "timestamp": datetime.utcnow().isoformat()},
            headers=NO_STORE,
        )

    return app


def main(argv: Optional[List[str]] = None) -> None:
    import uvicorn

    ap = argparse.ArgumentParser(description="MarketPulse dashboard gateway")
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=3000)
    args = ap.parse_args(argv)

    app = create_app()
    uvicorn.run(app, host=args.host, port=args.port, log_level="warning")
