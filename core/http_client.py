"""
Upstream HTTP Session
=====================

Blocking requests.Session wrapper the proxy gateway uses to reach the
data-plane API. One instance per gateway; FastAPI runs the synchronous
proxy routes in its threadpool and a Session is safe for concurrent GETs.

Every request goes out with ``Cache-Control: no-store`` so the upstream is
hit live. Retries are off unless asked for: the dashboard's next poll tick
is the retry.

Usage:
    with HTTPClient(timeout=10) as client:
        resp = client.get("https://data-plane.example/api/stream-lag",
                          headers={"X-API-Key": key})
"""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

USER_AGENT = "MarketPulse/1.0 (+dashboard-gateway)"

# Only idempotent reads go upstream, and only on statuses worth a second try.
RETRY_STATUSES = (429, 502, 503, 504)


def build_session(max_retries: int = 0) -> requests.Session:
    """Session with the gateway's fixed headers and an optional retry adapter."""
    session = requests.Session()
    session.headers.update({
        "User-Agent": USER_AGENT,
        "Accept": "application/json",
        "Cache-Control": "no-store",
    })
    if max_retries > 0:
        adapter = HTTPAdapter(max_retries=Retry(
            total=max_retries,
            backoff_factor=0.5,
            status_forcelist=RETRY_STATUSES,
            allowed_methods=frozenset({"GET"}),
            raise_on_status=False,
        ))
        session.mount("https://", adapter)
        session.mount("http://", adapter)
    return session


class HTTPClient:
    """GET-only client for the upstream API."""

    def __init__(self, timeout: float = 10.0, max_retries: int = 0):
        self.timeout = timeout
        self.max_retries = max_retries
        self.session = build_session(max_retries)

    def get(
        self,
        url: str,
        params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        """
        Issue one GET. Per-call headers are layered over the session's.

        Raises:
            requests.exceptions.RequestException: on connect/read failure or timeout
        """
        timeout = self.timeout if timeout is None else timeout
        started = time.monotonic()
        try:
            resp = self.session.get(url, params=params, headers=headers, timeout=timeout)
        except requests.exceptions.RequestException as e:
            logger.warning(f"GET {url} failed after {time.monotonic() - started:.2f}s: {e}")
            raise
        logger.debug(f"GET {url} -> {resp.status_code} in {(time.monotonic() - started) * 1000:.0f}ms")
        return resp

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HTTPClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
