"""
Market event classification and row formatting.

Derives a percent change and a direction for one market event using an
ordered fallback chain (first matching rule wins):

1. ``new_market`` events carry no price delta: unclassified.
2. Numeric ``old_value``/``new_value`` with ``old_value > 0``: relative change.
3. Numeric ``metadata.ret_1m``: one-minute return as a percentage.
4. Otherwise unclassified. Missing data is never an error.

The order matters: ``state_extreme`` rows flagged purely on z-score have no
old/new pair and must still classify through ``ret_1m``.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from dashboard.models import MarketEvent

NEW_MARKET = "new_market"
STATE_EXTREME = "state_extreme"

# Changes smaller than this (in percent) are float noise, not a move.
PCT_EPSILON = 0.01

PLACEHOLDER = "—"


class Direction(Enum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


ARROWS = {
    Direction.UP: "↑",
    Direction.DOWN: "↓",
    Direction.FLAT: "→",
}


@dataclass(frozen=True)
class EventClassification:
    pct_change: Optional[float] = None
    direction: Optional[Direction] = None

    @property
    def is_classified(self) -> bool:
        return self.direction is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pct_change": self.pct_change,
            "direction": self.direction.value if self.direction else None,
        }


UNCLASSIFIED = EventClassification()
FLAT = EventClassification(None, Direction.FLAT)


def _from_pct(pct: float) -> EventClassification:
    if abs(pct) < PCT_EPSILON:
        return FLAT
    return EventClassification(pct, Direction.UP if pct > 0 else Direction.DOWN)


def classify_event(event: MarketEvent) -> EventClassification:
    """Percent change and direction for one event (see module docstring)."""
    if event.event_type == NEW_MARKET:
        return UNCLASSIFIED

    old, new = event.old_value, event.new_value
    if old is not None and new is not None and old > 0:
        return _from_pct((new - old) / old * 100)

    ret_1m = event.metadata.ret_1m
    if ret_1m is not None:
        return _from_pct(ret_1m * 100)

    return UNCLASSIFIED


# =============================================================================
# ROW FORMATTING
# =============================================================================

def display_type(event: MarketEvent) -> str:
    if event.event_type == STATE_EXTREME:
        return "price jump"
    return (event.event_type or "").replace("_", " ")


def price_line(event: MarketEvent) -> str:
    if event.event_type == NEW_MARKET:
        return PLACEHOLDER
    old = f"{event.old_value:.3f}" if event.old_value is not None else PLACEHOLDER
    new = f"{event.new_value:.3f}" if event.new_value is not None else PLACEHOLDER
    return f"{old} → {new}"


def change_label(classification: EventClassification) -> str:
    if classification.pct_change is None:
        return PLACEHOLDER
    arrow = ARROWS.get(classification.direction, "")
    return f"{arrow} {abs(classification.pct_change):.1f}%".lstrip()


def time_ago(detected: Optional[datetime], now: Optional[datetime]) -> str:
    """Whole minutes between detection and the shared clock tick."""
    if detected is None or now is None:
        return ""
    minutes = int((now - detected).total_seconds() // 60)
    return f"{minutes}m ago"


@dataclass(frozen=True)
class EventRow:
    """One rendered line of the events panel."""
    title: str
    kind: str
    age: str
    prices: str
    change: str
    direction: Optional[Direction]
    zscore: Optional[str] = None
    hint: Optional[str] = None

    @property
    def subtitle(self) -> str:
        parts = [f"{self.kind} • {self.age}"]
        if self.zscore:
            parts.append(self.zscore)
        if self.hint:
            parts.append(self.hint)
        return " • ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "subtitle": self.subtitle,
            "prices": self.prices,
            "change": self.change,
            "direction": self.direction.value if self.direction else None,
        }


def describe_event(event: MarketEvent, now: Optional[datetime]) -> EventRow:
    classification = classify_event(event)
    meta = event.metadata

    zscore = None
    if classification.pct_change is None and meta.zscore_5m is not None:
        zscore = f"σ≈{meta.zscore_5m:.1f}"

    return EventRow(
        title=event.question or event.token_id,
        kind=display_type(event),
        age=time_ago(event.detected_time, now),
        prices=price_line(event),
        change=change_label(classification),
        direction=classification.direction,
        zscore=zscore,
        hint=meta.mean_revert_hint,
    )
