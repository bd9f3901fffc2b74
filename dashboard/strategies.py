"""
Strategy ranking and stale-while-error display policy.

Ranking: descending ``total_pnl``; ties are broken by ``name`` ascending so
that the order (and the top-N cut) is deterministic.

Display policy: a failed poll never blanks a working view. If a previous
successful payload exists it keeps rendering with a stale flag; only when
nothing has ever loaded is a hard error shown, and then no rows at all.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from core.exceptions import DashboardError
from dashboard.models import StrategySummary
from dashboard.polling import Snapshot, SnapshotSlot

DEFAULT_TOP_N = 2

STRATEGIES_ERROR_MESSAGE = "Failed to load strategy summaries from backend."
STALE_MESSAGE = "Showing last known strategy data; latest refresh failed."
WARMING_UP_MESSAGE = (
    "Strategy microservice is warming up or idle. Once paper trades start "
    "flowing, strategies and P&L will appear here."
)
EMPTY_LISTING_MESSAGE = (
    "No strategies found yet. Once the paper-trading engine runs, they'll appear here."
)


class Activity(Enum):
    ACTIVE = "ACTIVE"
    IDLE = "IDLE"


def rank_strategies(items: Iterable[StrategySummary]) -> Tuple[StrategySummary, ...]:
    """Descending total PnL, ties by name ascending."""
    return tuple(sorted(items, key=lambda s: (-s.total_pnl, s.name)))


def top_strategies(items: Iterable[StrategySummary], n: int = DEFAULT_TOP_N) -> Tuple[StrategySummary, ...]:
    return rank_strategies(items)[:n]


def activity(strategy: StrategySummary) -> Activity:
    return Activity.ACTIVE if strategy.fills_24h > 0 else Activity.IDLE


def pnl_tone(total: float) -> str:
    if total > 0:
        return "positive"
    if total < 0:
        return "negative"
    return "neutral"


def format_signed(value: float) -> str:
    return f"+{value:.2f}" if value >= 0 else f"{value:.2f}"


@dataclass(frozen=True)
class StrategyRow:
    name: str
    activity: Activity
    realized: str
    unrealized: str
    total: str
    tone: str
    fills_24h: int
    last_trade_at: Optional[str]

    @classmethod
    def from_summary(cls, s: StrategySummary) -> "StrategyRow":
        return cls(
            name=s.name,
            activity=activity(s),
            realized=f"{s.realized_pnl:.2f}",
            unrealized=f"{s.unrealized_pnl:.2f}",
            total=format_signed(s.total_pnl),
            tone=pnl_tone(s.total_pnl),
            fills_24h=s.fills_24h,
            last_trade_at=s.last_trade_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "activity": self.activity.value,
            "realized_pnl": self.realized,
            "unrealized_pnl": self.unrealized,
            "total_pnl": self.total,
            "tone": self.tone,
            "fills_24h": self.fills_24h,
            "last_trade_at": self.last_trade_at,
        }


@dataclass(frozen=True)
class StrategyPanel:
    rows: Tuple[StrategyRow, ...] = ()
    stale: bool = False
    hard_error: bool = False
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rows": [r.to_dict() for r in self.rows],
            "stale": self.stale,
            "hard_error": self.hard_error,
            "message": self.message,
        }


class StrategyBoard:
    """
    Holds the latest strategy payload and applies the stale-while-error policy.

    The board's slot is what the strategies poller writes into; callers that
    drive it by hand use record_success / record_failure.
    """

    def __init__(self, slot: Optional[SnapshotSlot[Tuple[StrategySummary, ...]]] = None):
        self.slot: SnapshotSlot[Tuple[StrategySummary, ...]] = slot or SnapshotSlot("strategies")
        self._manual_seq = 0

    @property
    def snapshot(self) -> Snapshot[Tuple[StrategySummary, ...]]:
        return self.slot.snapshot

    def _next_seq(self) -> int:
        self._manual_seq = max(self._manual_seq, self.slot.snapshot.seq) + 1
        return self._manual_seq

    def record_success(self, strategies: Iterable[StrategySummary]) -> None:
        self.slot.apply_success(self._next_seq(), tuple(strategies))

    def record_failure(self, error: DashboardError) -> None:
        self.slot.apply_failure(self._next_seq(), error)

    @property
    def ranked(self) -> Tuple[StrategySummary, ...]:
        return rank_strategies(self.snapshot.data or ())

    def _panel(self, limit: Optional[int], empty_message: str) -> StrategyPanel:
        snap = self.snapshot
        if snap.is_hard_error:
            return StrategyPanel(hard_error=True, message=STRATEGIES_ERROR_MESSAGE)
        if snap.data is None:
            return StrategyPanel()

        ranked = self.ranked if limit is None else self.ranked[:limit]
        rows = tuple(StrategyRow.from_summary(s) for s in ranked)
        if not rows:
            return StrategyPanel(stale=snap.is_stale, message=empty_message)
        if snap.is_stale:
            return StrategyPanel(rows=rows, stale=True, message=STALE_MESSAGE)
        return StrategyPanel(rows=rows)

    def summary(self, n: int = DEFAULT_TOP_N) -> StrategyPanel:
        """Top-N cards for the landing page."""
        return self._panel(n, WARMING_UP_MESSAGE)

    def listing(self) -> StrategyPanel:
        """Full ranked list for the dedicated strategies view."""
        return self._panel(None, EMPTY_LISTING_MESSAGE)
