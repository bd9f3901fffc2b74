"""
Stream lag banding.

Turns a raw "age of most recent record" value into a short label and a
severity level for the stats grid badges.

Two threshold schemes have existed for this dashboard, one banding whole
seconds and one banding milliseconds. Both are registered here as named
policies; the seconds policy is the default because normal ingest lag is
1-4s and sustained lag of a few minutes means the pipeline is under serious
stress.

Usage:
    from dashboard.lag import classify_lag, get_lag_policy

    band = classify_lag(3.2)                  # LagBand("3.20s", LagLevel.OK)
    band = classify_lag(45.0)                 # LagBand("45.0s", LagLevel.WARN)
    band = classify_lag(0.3, get_lag_policy("milliseconds"))
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from dashboard.models import StreamLagSnapshot, as_number

NO_DATA_LABEL = "—"


class LagLevel(Enum):
    OK = "ok"
    WARN = "warn"
    BAD = "bad"


@dataclass(frozen=True)
class LagBand:
    label: str
    level: LagLevel

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "level": self.level.value}


@dataclass(frozen=True)
class LagPolicy:
    """Severity thresholds in seconds: ok below ``warn_at_sec``, bad at/above ``bad_at_sec``."""
    name: str
    warn_at_sec: float
    bad_at_sec: float

    def __post_init__(self):
        if not 0 < self.warn_at_sec < self.bad_at_sec:
            raise ValueError(
                f"Lag policy '{self.name}' needs 0 < warn_at_sec < bad_at_sec "
                f"(got {self.warn_at_sec}, {self.bad_at_sec})"
            )

    def level_for(self, sec: float) -> LagLevel:
        if sec < self.warn_at_sec:
            return LagLevel.OK
        if sec < self.bad_at_sec:
            return LagLevel.WARN
        return LagLevel.BAD

    def with_overrides(
        self,
        warn_at_sec: Optional[float] = None,
        bad_at_sec: Optional[float] = None,
    ) -> "LagPolicy":
        if warn_at_sec is None and bad_at_sec is None:
            return self
        return LagPolicy(
            name=f"{self.name}+custom",
            warn_at_sec=warn_at_sec if warn_at_sec is not None else self.warn_at_sec,
            bad_at_sec=bad_at_sec if bad_at_sec is not None else self.bad_at_sec,
        )


SECONDS_POLICY = LagPolicy(name="seconds", warn_at_sec=5.0, bad_at_sec=120.0)
MILLISECONDS_POLICY = LagPolicy(name="milliseconds", warn_at_sec=0.25, bad_at_sec=1.0)

LAG_POLICIES: Dict[str, LagPolicy] = {
    SECONDS_POLICY.name: SECONDS_POLICY,
    MILLISECONDS_POLICY.name: MILLISECONDS_POLICY,
}

DEFAULT_LAG_POLICY = SECONDS_POLICY


def get_lag_policy(
    name: str = DEFAULT_LAG_POLICY.name,
    warn_at_sec: Optional[float] = None,
    bad_at_sec: Optional[float] = None,
) -> LagPolicy:
    """Look up a named policy, optionally overriding its thresholds."""
    try:
        policy = LAG_POLICIES[name]
    except KeyError:
        raise ValueError(f"Unknown lag policy '{name}' (known: {', '.join(LAG_POLICIES)})") from None
    return policy.with_overrides(warn_at_sec, bad_at_sec)


def format_lag(sec: float) -> str:
    """Sub-second values in ms, otherwise seconds (2 decimals below 10s, 1 above)."""
    if sec < 1:
        ms = sec * 1000
        return f"{ms:.1f}ms" if ms < 10 else f"{round(ms)}ms"
    return f"{sec:.2f}s" if sec < 10 else f"{sec:.1f}s"


def classify_lag(sec: Any, policy: LagPolicy = DEFAULT_LAG_POLICY) -> LagBand:
    """
    Band a lag value.

    Absent, non-numeric, zero or negative input is "no data" and gets the
    sentinel label at level ok; it is never reported as healthy zero lag.
    """
    value = as_number(sec)
    if value is None or value <= 0:
        return LagBand(NO_DATA_LABEL, LagLevel.OK)
    return LagBand(format_lag(value), policy.level_for(value))


def classify_snapshot(
    snapshot: Optional[StreamLagSnapshot],
    policy: LagPolicy = DEFAULT_LAG_POLICY,
) -> Dict[str, LagBand]:
    """Bands for the quotes/trades/features streams of one snapshot."""
    snapshot = snapshot or StreamLagSnapshot()
    return {
        "quotes": classify_lag(snapshot.quotes_lag_sec, policy),
        "trades": classify_lag(snapshot.trades_lag_sec, policy),
        "features": classify_lag(snapshot.features_lag_sec, policy),
    }
