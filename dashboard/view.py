"""
Dashboard state and console rendering.

DashboardState owns one snapshot slot per source plus the event feed
controller and the shared clock. Every source refreshes independently, so
the assembled view may be momentarily inconsistent across panels; each
panel only ever reads one whole snapshot.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from dashboard.events import Direction
from dashboard.feeds import EventFeedController, EventsPanel
from dashboard.lag import DEFAULT_LAG_POLICY, LagBand, LagLevel, LagPolicy, classify_snapshot
from dashboard.models import StatsResponse, StreamLagSnapshot, parse_timestamp
from dashboard.polling import Clock, SnapshotSlot
from dashboard.strategies import DEFAULT_TOP_N, STALE_MESSAGE, StrategyBoard, StrategyPanel

WIDTH = 72

LEVEL_TAGS = {
    LagLevel.OK: "[OK]",
    LagLevel.WARN: "[!!]",
    LagLevel.BAD: "[XX]",
}

DIRECTION_TAGS = {
    Direction.UP: "+",
    Direction.DOWN: "-",
    Direction.FLAT: "=",
}


def format_count(value: Optional[float]) -> str:
    if value is None:
        return "—"
    return f"{round(value):,}"


def utc_time_label(value: Optional[str]) -> Optional[str]:
    dt = parse_timestamp(value)
    return dt.strftime("%H:%M:%S") if dt else None


@dataclass(frozen=True)
class StatCard:
    title: str
    value: str
    note: str


def stat_cards(stats: StatsResponse) -> Tuple[StatCard, ...]:
    return (
        StatCard("Markets Active", format_count(stats.active_markets),
                 "Markets currently tracked by the gatherer."),
        StatCard("Features per minute", format_count(stats.features_per_minute),
                 "Rolling signals emitted by the feature engine."),
        StatCard("Strategies running", format_count(stats.strategies_count),
                 "Strategies active in the last 24 hours."),
        StatCard("Events (last 24h)", format_count(stats.events_24h),
                 "Market events recorded in the last 24 hours."),
        StatCard("Ingest (quotes / minute)", format_count(stats.ingest_quotes_per_min),
                 "Approximate quote throughput based on partition span."),
        StatCard("Ingest (trades / minute)", format_count(stats.ingest_trades_per_min),
                 "Approximate trade throughput based on partition span."),
    )


class DashboardState:
    """Everything the landing page shows, fed by independent pollers."""

    def __init__(
        self,
        events: EventFeedController,
        lag_policy: LagPolicy = DEFAULT_LAG_POLICY,
        top_n: int = DEFAULT_TOP_N,
        clock: Optional[Clock] = None,
    ):
        self.events = events
        self.lag_policy = lag_policy
        self.top_n = top_n
        self.clock = clock or Clock()
        self.stats: SnapshotSlot[StatsResponse] = SnapshotSlot("stats")
        self.stream_lag: SnapshotSlot[StreamLagSnapshot] = SnapshotSlot("stream-lag")
        self.strategies = StrategyBoard()

    # ------------------------------------------------------------------ #
    # Panels
    # ------------------------------------------------------------------ #

    def events_processed(self) -> int:
        stats = self.stats.snapshot.data
        if stats is None or stats.events_24h is None:
            return 0
        return int(stats.events_24h)

    def stats_grid(self) -> Optional[Tuple[StatCard, ...]]:
        stats = self.stats.snapshot.data
        if stats is None or not stats.is_valid:
            return None
        return stat_cards(stats)

    def lag_bands(self) -> Dict[str, LagBand]:
        return classify_snapshot(self.stream_lag.snapshot.data, self.lag_policy)

    def events_panel(self) -> Optional[EventsPanel]:
        return self.events.panel(self.clock.now)

    def strategy_panel(self) -> StrategyPanel:
        return self.strategies.summary(self.top_n)

    def to_dict(self) -> Dict[str, Any]:
        stats = self.stats.snapshot.data
        lag = self.stream_lag.snapshot.data
        grid = self.stats_grid()
        panel = self.events_panel()
        return {
            "now": self.clock.now.isoformat() if self.clock.now else None,
            "events_processed": self.events_processed(),
            "stats_error": self.stats.snapshot.error is not None,
            "stats": [asdict(card) for card in grid] if grid else None,
            "stats_snapshot_at": utc_time_label(stats.generated_at) if stats else None,
            "lag": {name: band.to_dict() for name, band in self.lag_bands().items()},
            "lag_snapshot_at": utc_time_label(lag.generated_at) if lag else None,
            "events": panel.to_dict() if panel else None,
            "strategies": self.strategy_panel().to_dict(),
        }

    # ------------------------------------------------------------------ #
    # Console rendering
    # ------------------------------------------------------------------ #

    def render(self) -> List[str]:
        lines: List[str] = []
        now: Optional[datetime] = self.clock.now

        lines.append("=" * WIDTH)
        lines.append("MARKETPULSE LIVE DASHBOARD".center(WIDTH))
        lines.append("=" * WIDTH)
        if now:
            lines.append(f"Now: {now.strftime('%Y-%m-%d %H:%M:%S')} UTC")
        lines.append(f"Events processed (24h): {self.events_processed():,}")
        if self.stats.snapshot.error is not None:
            lines.append("[!!] Backend stats unavailable")

        grid = self.stats_grid()
        if grid:
            lines.append("-" * WIDTH)
            for card in grid:
                lines.append(f"  {card.title:<28} {card.value:>14}")
            stats = self.stats.snapshot.data
            label = utc_time_label(stats.generated_at) if stats else None
            if label:
                lines.append(f"  Stats snapshot at {label} UTC")

        lines.append("-" * WIDTH)
        lines.append("STREAM LAG:")
        for name, band in self.lag_bands().items():
            lines.append(f"  {LEVEL_TAGS[band.level]} {name.capitalize():<10} {band.label}")
        lag = self.stream_lag.snapshot.data
        lag_label = utc_time_label(lag.generated_at) if lag else None
        if lag_label:
            lines.append(f"  Stream lag as of {lag_label} UTC")

        panel = self.events_panel()
        if panel is not None:
            lines.append("-" * WIDTH)
            tabs = "  ".join(f"[{t.label}]" if t.active else t.label for t in panel.tabs)
            lines.append(f"LIVE MARKET EVENTS  {tabs}  (updates every {self.events.all_pollers()[0].interval_sec:g}s)")
            if panel.error:
                lines.append(f"  [XX] {panel.error}")
            if panel.stale:
                lines.append("  [!!] stale: latest refresh failed")
            for row in panel.rows:
                tag = DIRECTION_TAGS.get(row.direction, " ")
                lines.append(f"  {tag} {row.title[:44]:<44} {row.prices:>15} {row.change:>8}")
                lines.append(f"      {row.subtitle}")

        lines.append("-" * WIDTH)
        lines.append("TOP STRATEGIES:")
        strategies = self.strategy_panel()
        if strategies.hard_error:
            lines.append(f"  [XX] {strategies.message}")
        else:
            if strategies.stale:
                lines.append(f"  [!!] {STALE_MESSAGE}")
            for row in strategies.rows:
                last = row.last_trade_at or "—"
                lines.append(
                    f"  {row.name:<24} {row.activity.value:<6} fills(24h): {row.fills_24h:,}"
                    f"  P&L: {row.total}  last: {last}"
                )
            if not strategies.rows and strategies.message:
                lines.append(f"  {strategies.message}")

        lines.append("=" * WIDTH)
        return lines
