"""
Console dashboard runner.

Polls the gateway on independent timers (stats, stream lag, strategies and
both event feeds) on a single asyncio loop, advances the shared clock once
per tick and redraws the text dashboard.

Usage:
    python -m dashboard --gateway http://localhost:3000
    python -m dashboard --gateway http://localhost:3000 --once --json
    python -m dashboard --tab price_jump
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import List, Optional

from config.settings_schema import Settings, load_validated_settings
from core.structured_log import jlog, set_console_echo
from dashboard.client import DashboardClient
from dashboard.feeds import EventFeedController, EventTab, default_queries
from dashboard.polling import Poller
from dashboard.view import DashboardState

logger = logging.getLogger(__name__)

CLEAR_SCREEN = "\x1b[2J\x1b[H"


def build_dashboard(client: DashboardClient, settings: Settings) -> tuple[DashboardState, List[Poller]]:
    """Wire the client, state slots and pollers from settings."""
    polling = settings.polling

    events = EventFeedController(
        fetch=client.market_events,
        queries=default_queries(
            limit=settings.events.limit,
            price_jump_min_ret=settings.events.price_jump_min_ret,
        ),
        interval_sec=polling.events_sec,
    )
    state = DashboardState(
        events=events,
        lag_policy=settings.lag.resolve(),
        top_n=settings.strategies.top_n,
    )

    pollers: List[Poller] = [
        Poller("stats", client.stats, state.stats, polling.stats_sec),
        Poller("stream-lag", client.stream_lag, state.stream_lag, polling.stream_lag_sec),
        Poller("strategies", client.strategies, state.strategies.slot, polling.strategies_sec),
        *events.all_pollers(),
    ]
    return state, pollers


async def run_once(state: DashboardState, pollers: List[Poller]) -> None:
    """Poll every source once, concurrently, then advance the clock."""
    await asyncio.gather(*(p.poll_once() for p in pollers))
    state.clock.tick()


async def run_live(state: DashboardState, pollers: List[Poller], tick_sec: float) -> None:
    def redraw(_now) -> None:
        print(CLEAR_SCREEN + "\n".join(state.render()), flush=True)

    tasks = [asyncio.ensure_future(p.run()) for p in pollers]
    tasks.append(asyncio.ensure_future(state.clock.run(tick_sec, on_tick=redraw)))
    try:
        await asyncio.gather(*tasks)
    finally:
        for task in tasks:
            task.cancel()


async def amain(args: argparse.Namespace) -> int:
    settings = load_validated_settings()
    async with DashboardClient(args.gateway, timeout=settings.gateway.timeout_sec) as client:
        state, pollers = build_dashboard(client, settings)
        state.events.select_tab(EventTab(args.tab))
        jlog("dashboard_start", gateway=args.gateway, once=args.once, sources=len(pollers))

        if args.once:
            await run_once(state, pollers)
            if args.json:
                print(json.dumps(state.to_dict(), indent=2, default=str))
            else:
                print("\n".join(state.render()))
            return 0

        await run_live(state, pollers, settings.polling.clock_tick_sec)
    return 0


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="MarketPulse live console dashboard")
    ap.add_argument("--gateway", default="http://localhost:3000", help="Gateway base URL")
    ap.add_argument("--tab", choices=[t.value for t in EventTab], default=EventTab.NEW_MARKET.value,
                    help="Initially visible event feed")
    ap.add_argument("--once", action="store_true", help="Poll every source once, print, exit")
    ap.add_argument("--json", action="store_true", help="With --once, print the view model as JSON")
    ap.add_argument("--verbose", action="store_true", help="Echo structured log events to the console")
    return ap.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    set_console_echo(args.verbose)
    try:
        return asyncio.run(amain(args))
    except KeyboardInterrupt:
        return 130
