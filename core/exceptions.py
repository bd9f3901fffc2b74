"""
Exception hierarchy for the MarketPulse dashboard and gateway.

Failures surface at two seams and each has its own branch:

    DashboardError
    ├── ConfigurationError        fatal, raised once at process start
    │   ├── MissingConfigError
    │   └── SettingsValidationError
    ├── DataError                 dashboard side, recorded on the snapshot
    │   ├── FetchError            gateway answered non-2xx or was unreachable
    │   └── PayloadError          2xx but not the expected JSON shape
    └── UpstreamError             gateway side, turned into JSON envelopes
        ├── UpstreamHTTPError
        └── UpstreamTransportError

Gaps inside an otherwise valid payload (no old/new price, empty metadata)
are not errors; classification resolves them to "unclassified".
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class DashboardError(Exception):
    """Root of the hierarchy. Subclasses set ``error_code`` and ``is_recoverable``."""

    error_code = "DASHBOARD_ERROR"
    # Recoverable errors are retried implicitly by the next poll tick.
    is_recoverable = True

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context or {})
        self.cause = cause
        self.raised_at = datetime.now(timezone.utc)

    def __str__(self) -> str:
        if not self.context:
            return f"{self.error_code}: {self.message}"
        details = "; ".join(f"{k}={v}" for k, v in sorted(self.context.items()))
        return f"{self.error_code}: {self.message} [{details}]"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "error_code": self.error_code,
            "message": self.message,
            "recoverable": self.is_recoverable,
            "raised_at": self.raised_at.isoformat(),
        }
        if self.context:
            data["context"] = self.context
        if self.cause is not None:
            data["cause"] = repr(self.cause)
        return data


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigurationError(DashboardError):
    error_code = "CONFIG_ERROR"
    is_recoverable = False


class MissingConfigError(ConfigurationError):
    """Upstream base URL or API key absent when the gateway is created."""
    error_code = "CONFIG_MISSING"


class SettingsValidationError(ConfigurationError):
    error_code = "SETTINGS_INVALID"


# ---------------------------------------------------------------------------
# Dashboard data
# ---------------------------------------------------------------------------

class DataError(DashboardError):
    error_code = "DATA_ERROR"


class FetchError(DataError):
    """
    A poll against the gateway failed.

    ``status`` is the gateway's HTTP status, or None when no response came
    back at all (connect error, timeout).
    """
    error_code = "FETCH_FAILED"

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, context, cause)
        self.status = status
        if status is not None:
            self.context.setdefault("status", status)


class PayloadError(DataError):
    error_code = "PAYLOAD_INVALID"


# ---------------------------------------------------------------------------
# Upstream (gateway side)
# ---------------------------------------------------------------------------

class UpstreamError(DashboardError):
    error_code = "UPSTREAM_ERROR"


class UpstreamHTTPError(UpstreamError):
    """Upstream answered non-2xx; status and body are passed through as-is."""
    error_code = "UPSTREAM_HTTP"

    def __init__(self, status: int, reason: str, body: str):
        super().__init__(f"API error: {reason}", {"status": status})
        self.status = status
        self.reason = reason
        self.body = body


class UpstreamTransportError(UpstreamError):
    """Upstream unreachable, timed out, or answered with invalid JSON."""
    error_code = "UPSTREAM_TRANSPORT"
