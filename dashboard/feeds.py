"""
Dual market-event feeds with local tab state.

Two feeds are polled continuously, whichever tab is visible, so switching
tabs is instantaneous and never triggers a fetch:

- New markets: ``type=new_market``, newest first by detection time (not by
  popularity or liquidity).
- Price jumps: ``type=state_extreme`` with ``|ret| >= min_ret``, same
  recency ordering.

Each feed keeps its own snapshot and error; only the active feed decides
what the panel shows.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from dashboard.events import EventRow, describe_event
from dashboard.models import MarketEvent
from dashboard.polling import Poller, Snapshot, SnapshotSlot

EVENTS_ERROR_MESSAGE = "Failed to load market events from backend."


class EventTab(Enum):
    NEW_MARKET = "new_market"
    PRICE_JUMP = "price_jump"


TAB_TITLES = {
    EventTab.NEW_MARKET: "New markets",
    EventTab.PRICE_JUMP: "Price jumps",
}


@dataclass(frozen=True)
class FeedQuery:
    event_type: str
    limit: int = 20
    hours: int = 0
    min_ret: Optional[float] = None

    def params(self) -> Dict[str, str]:
        params = {"type": self.event_type}
        if self.min_ret is not None:
            params["min_ret"] = f"{self.min_ret:g}"
        params["limit"] = str(self.limit)
        params["hours"] = str(self.hours)
        return params


def default_queries(limit: int = 20, price_jump_min_ret: float = 0.05) -> Dict[EventTab, FeedQuery]:
    return {
        EventTab.NEW_MARKET: FeedQuery("new_market", limit=limit),
        EventTab.PRICE_JUMP: FeedQuery("state_extreme", limit=limit, min_ret=price_jump_min_ret),
    }


@dataclass(frozen=True)
class TabLabel:
    tab: EventTab
    label: str
    active: bool


@dataclass(frozen=True)
class EventsPanel:
    """What the events panel renders for the active tab."""
    active_tab: EventTab
    tabs: Tuple[TabLabel, ...] = ()
    rows: Tuple[EventRow, ...] = ()
    error: Optional[str] = None
    stale: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "active_tab": self.active_tab.value,
            "tabs": [{"tab": t.tab.value, "label": t.label, "active": t.active} for t in self.tabs],
            "rows": [r.to_dict() for r in self.rows],
            "error": self.error,
            "stale": self.stale,
        }


EventFetcher = Callable[[FeedQuery], Awaitable[Tuple[MarketEvent, ...]]]


class EventFeedController:
    """Owns the two event feeds and the active-tab selection."""

    def __init__(
        self,
        fetch: EventFetcher,
        queries: Optional[Dict[EventTab, FeedQuery]] = None,
        interval_sec: float = 10.0,
        on_update: Optional[Callable[[str], None]] = None,
    ):
        self.queries = queries or default_queries()
        self.active_tab = EventTab.NEW_MARKET
        self.slots: Dict[EventTab, SnapshotSlot[Tuple[MarketEvent, ...]]] = {}
        self.pollers: Dict[EventTab, Poller[Tuple[MarketEvent, ...]]] = {}

        for tab, query in self.queries.items():
            name = f"events:{tab.value}"
            slot: SnapshotSlot[Tuple[MarketEvent, ...]] = SnapshotSlot(name)
            self.slots[tab] = slot
            self.pollers[tab] = Poller(
                name,
                fetch=lambda q=query: fetch(q),
                slot=slot,
                interval_sec=interval_sec,
                on_update=on_update,
            )

    def select_tab(self, tab: EventTab) -> None:
        """Switch the visible feed. Local state only; no fetch is issued."""
        self.active_tab = EventTab(tab)

    def feed(self, tab: EventTab) -> Snapshot[Tuple[MarketEvent, ...]]:
        return self.slots[tab].snapshot

    def event_count(self, tab: EventTab) -> int:
        return len(self.feed(tab).data or ())

    def tab_labels(self) -> Tuple[TabLabel, ...]:
        return tuple(
            TabLabel(tab, f"{TAB_TITLES[tab]} ({self.event_count(tab)})", tab == self.active_tab)
            for tab in self.queries
        )

    def panel(self, now: Optional[datetime]) -> Optional[EventsPanel]:
        """
        Resolve the panel for the active feed.

        - nothing ever loaded and the feed errored: error message
        - no events (never loaded, or an empty successful result): None,
          the whole panel is suppressed
        - otherwise rows, flagged stale when the latest poll failed
        """
        snap = self.feed(self.active_tab)

        if snap.is_hard_error:
            return EventsPanel(active_tab=self.active_tab, tabs=self.tab_labels(), error=EVENTS_ERROR_MESSAGE)

        if not snap.data:
            return None

        rows = tuple(describe_event(event, now) for event in snap.data)
        return EventsPanel(
            active_tab=self.active_tab,
            tabs=self.tab_labels(),
            rows=rows,
            stale=snap.is_stale,
        )

    def all_pollers(self) -> List[Poller]:
        return list(self.pollers.values())
