"""
Upstream payload models.

Every entity is re-fetched on each poll and parsed into a frozen dataclass;
nothing is mutated in place. Parsing is tolerant: a missing or wrongly-typed
optional field becomes ``None`` so that classification can resolve gaps to an
explicit "unclassified" result instead of failing the whole payload.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from core.exceptions import PayloadError


# =============================================================================
# FIELD HELPERS
# =============================================================================

def as_number(value: Any) -> Optional[float]:
    """Return ``value`` as float when it is a finite real number (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def as_text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an upstream ISO timestamp into an aware UTC datetime.

    Naive timestamps are assumed to be UTC. Unparsable input yields None.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value:
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _require_mapping(payload: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise PayloadError(f"Expected an object for {what}", context={"got": type(payload).__name__})
    return payload


def _require_list(payload: Any, what: str) -> List[Any]:
    if not isinstance(payload, list):
        raise PayloadError(f"Expected an array for {what}", context={"got": type(payload).__name__})
    return payload


# =============================================================================
# STREAM LAG
# =============================================================================

@dataclass(frozen=True)
class StreamLagSnapshot:
    """Age of the most recent record per stream; absent or <= 0 means no data."""
    quotes_lag_sec: Optional[float] = None
    trades_lag_sec: Optional[float] = None
    features_lag_sec: Optional[float] = None
    generated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Any) -> "StreamLagSnapshot":
        data = _require_mapping(payload, "stream-lag")
        return cls(
            quotes_lag_sec=as_number(data.get("quotes_lag_sec")),
            trades_lag_sec=as_number(data.get("trades_lag_sec")),
            features_lag_sec=as_number(data.get("features_lag_sec")),
            generated_at=as_text(data.get("generated_at")),
        )


# =============================================================================
# MARKET EVENTS
# =============================================================================

@dataclass(frozen=True)
class EventMetadata:
    """
    Sparse view over the open ``metadata`` bag of a market event.

    Only the typed accessors are read by classification; anything else the
    upstream sends is kept in ``extra`` for display/debugging.
    """
    ret_1m: Optional[float] = None
    zscore_5m: Optional[float] = None
    mean_revert_hint: Optional[str] = None
    percent_change: Optional[float] = None
    extra: Tuple[Tuple[str, Any], ...] = ()

    KNOWN_KEYS = ("ret_1m", "zscore_5m", "mean_revert_hint", "percent_change")

    @classmethod
    def from_dict(cls, payload: Any) -> "EventMetadata":
        if not isinstance(payload, Mapping):
            return cls()
        return cls(
            ret_1m=as_number(payload.get("ret_1m")),
            zscore_5m=as_number(payload.get("zscore_5m")),
            mean_revert_hint=as_text(payload.get("mean_revert_hint")) or None,
            percent_change=as_number(payload.get("percent_change")),
            extra=tuple(
                (k, v) for k, v in payload.items() if k not in cls.KNOWN_KEYS
            ),
        )


@dataclass(frozen=True)
class MarketEvent:
    token_id: str
    detected_at: Optional[str] = None
    event_type: Optional[str] = None
    old_value: Optional[float] = None
    new_value: Optional[float] = None
    question: Optional[str] = None
    metadata: EventMetadata = field(default_factory=EventMetadata)

    @property
    def detected_time(self) -> Optional[datetime]:
        return parse_timestamp(self.detected_at)

    @classmethod
    def from_dict(cls, payload: Any) -> "MarketEvent":
        data = _require_mapping(payload, "market event")
        return cls(
            token_id=str(data.get("token_id", "")),
            detected_at=as_text(data.get("detected_at")),
            event_type=as_text(data.get("event_type")),
            old_value=as_number(data.get("old_value")),
            new_value=as_number(data.get("new_value")),
            question=as_text(data.get("question")) or None,
            metadata=EventMetadata.from_dict(data.get("metadata")),
        )


def parse_market_events(payload: Any) -> Tuple[MarketEvent, ...]:
    return tuple(MarketEvent.from_dict(item) for item in _require_list(payload, "market-events"))


# =============================================================================
# STRATEGIES
# =============================================================================

@dataclass(frozen=True)
class StrategySummary:
    """
    Per-strategy paper-trading summary.

    ``total_pnl`` is supplied independently by the upstream and is never
    recomputed from the realized/unrealized parts.
    """
    name: str
    realized_pnl: float = 0.0
    unrealized_pnl: float = 0.0
    total_pnl: float = 0.0
    fills_24h: int = 0
    last_trade_at: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Any) -> "StrategySummary":
        data = _require_mapping(payload, "strategy")
        name = as_text(data.get("name"))
        if not name:
            raise PayloadError("Strategy summary without a name")
        fills = as_number(data.get("fills_24h"))
        return cls(
            name=name,
            realized_pnl=as_number(data.get("realized_pnl")) or 0.0,
            unrealized_pnl=as_number(data.get("unrealized_pnl")) or 0.0,
            total_pnl=as_number(data.get("total_pnl")) or 0.0,
            fills_24h=int(fills) if fills is not None else 0,
            last_trade_at=as_text(data.get("last_trade_at")) or None,
        )


def parse_strategies(payload: Any) -> Tuple[StrategySummary, ...]:
    return tuple(StrategySummary.from_dict(item) for item in _require_list(payload, "strategies"))


# =============================================================================
# STATS
# =============================================================================

@dataclass(frozen=True)
class StatsResponse:
    """Aggregate counters snapshot; safe to cache across polls."""
    active_markets: Optional[float] = None
    events_24h: Optional[float] = None
    strategies_count: Optional[float] = None
    features_per_minute: Optional[float] = None
    ingest_quotes_per_min: Optional[float] = None
    ingest_trades_per_min: Optional[float] = None
    open_positions: Optional[float] = None
    total_pnl: Optional[float] = None
    db_size: Optional[str] = None
    approx_quotes_total: Optional[float] = None
    approx_trades_total: Optional[float] = None
    approx_features_total: Optional[float] = None
    generated_at: Optional[str] = None
    writer_queue_depths: Dict[str, float] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        """The stats grid is only rendered when ``active_markets`` is numeric."""
        return self.active_markets is not None

    @classmethod
    def from_dict(cls, payload: Any) -> "StatsResponse":
        data = _require_mapping(payload, "stats")
        depths = data.get("writer_queue_depths")
        return cls(
            active_markets=as_number(data.get("active_markets")),
            events_24h=as_number(data.get("events_24h")),
            strategies_count=as_number(data.get("strategies_count")),
            features_per_minute=as_number(data.get("features_per_minute")),
            ingest_quotes_per_min=as_number(data.get("ingest_quotes_per_min")),
            ingest_trades_per_min=as_number(data.get("ingest_trades_per_min")),
            open_positions=as_number(data.get("open_positions")),
            total_pnl=as_number(data.get("total_pnl")),
            db_size=as_text(data.get("db_size")),
            approx_quotes_total=as_number(data.get("approx_quotes_total")),
            approx_trades_total=as_number(data.get("approx_trades_total")),
            approx_features_total=as_number(data.get("approx_features_total")),
            generated_at=as_text(data.get("generated_at")),
            writer_queue_depths={
                str(k): n for k, v in depths.items() if (n := as_number(v)) is not None
            } if isinstance(depths, Mapping) else {},
        )
