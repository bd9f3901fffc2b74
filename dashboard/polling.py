"""
Independent pollers with last-known-good snapshots.

Each data source (stats, stream lag, strategies, each event feed) is polled
by its own asyncio timer. Timers are not synchronized and a slow response is
never cancelled, so results can arrive out of order. Every request is
stamped with a per-source, monotonically increasing sequence number and the
SnapshotSlot only applies a result that is newer than the one it holds: last
*dispatched* wins, not last *arrived*.

Writes are whole-snapshot replacements of a frozen object, so readers on the
same event loop always see a coherent snapshot without locking.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Awaitable, Callable, Generic, Optional, Set, TypeVar

from core.exceptions import DashboardError
from core.structured_log import jlog

logger = logging.getLogger(__name__)

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Snapshot(Generic[T]):
    """
    Latest applied state for one source.

    ``data`` is the last successful payload (kept across failures);
    ``error`` is set when the most recent applied poll failed.
    """
    data: Optional[T] = None
    error: Optional[DashboardError] = None
    seq: int = 0
    updated_at: Optional[datetime] = None
    last_success_at: Optional[datetime] = None

    @property
    def has_data(self) -> bool:
        return self.data is not None

    @property
    def is_stale(self) -> bool:
        """Prior data is being shown because the latest poll failed."""
        return self.data is not None and self.error is not None

    @property
    def is_hard_error(self) -> bool:
        """Failed and nothing has ever loaded."""
        return self.data is None and self.error is not None


class SnapshotSlot(Generic[T]):
    """Sequence-guarded holder of one source's Snapshot."""

    def __init__(self, name: str, clock: Callable[[], datetime] = utcnow):
        self.name = name
        self._clock = clock
        self._snapshot: Snapshot[T] = Snapshot()

    @property
    def snapshot(self) -> Snapshot[T]:
        return self._snapshot

    def apply_success(self, seq: int, data: T) -> bool:
        if not self._accepts(seq):
            return False
        now = self._clock()
        self._snapshot = Snapshot(data=data, error=None, seq=seq, updated_at=now, last_success_at=now)
        return True

    def apply_failure(self, seq: int, error: DashboardError) -> bool:
        if not self._accepts(seq):
            return False
        # Keep the previous data: stale-while-error.
        self._snapshot = replace(self._snapshot, error=error, seq=seq, updated_at=self._clock())
        return True

    def _accepts(self, seq: int) -> bool:
        if seq <= self._snapshot.seq:
            jlog(
                "poll_discarded_stale_response",
                level="DEBUG",
                source=self.name,
                seq=seq,
                applied_seq=self._snapshot.seq,
            )
            return False
        return True


class Poller(Generic[T]):
    """
    Polls one source on a fixed interval.

    Each tick dispatches the fetch as its own task so a slow request does not
    delay the next tick; the slot's sequence guard discards late arrivals.
    """

    def __init__(
        self,
        name: str,
        fetch: Callable[[], Awaitable[T]],
        slot: SnapshotSlot[T],
        interval_sec: float,
        on_update: Optional[Callable[[str], None]] = None,
    ):
        if interval_sec <= 0:
            raise ValueError(f"Poller '{name}' needs a positive interval")
        self.name = name
        self.fetch = fetch
        self.slot = slot
        self.interval_sec = interval_sec
        self.on_update = on_update
        self._seq = itertools.count(1)
        self._in_flight: Set[asyncio.Task] = set()

    def next_seq(self) -> int:
        return next(self._seq)

    async def poll_once(self) -> bool:
        """Fetch once and apply the result. Returns True when the slot changed."""
        seq = self.next_seq()
        try:
            data = await self.fetch()
        except DashboardError as e:
            jlog("poll_failed", level="WARNING", source=self.name, seq=seq, error_code=e.error_code, error=e.message)
            applied = self.slot.apply_failure(seq, e)
        else:
            applied = self.slot.apply_success(seq, data)

        if applied and self.on_update is not None:
            self.on_update(self.name)
        return applied

    def _dispatch(self) -> asyncio.Task:
        task = asyncio.ensure_future(self.poll_once())
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def run(self) -> None:
        """Poll immediately, then every ``interval_sec`` until cancelled."""
        logger.debug(f"Poller {self.name} started (every {self.interval_sec}s)")
        try:
            while True:
                self._dispatch()
                await asyncio.sleep(self.interval_sec)
        finally:
            for task in list(self._in_flight):
                task.cancel()


class Clock:
    """
    Shared display clock, advanced once per tick.

    Relative ages ("3m ago") are computed against this tick rather than the
    fetch time, so they keep advancing between polls.
    """

    def __init__(self, source: Callable[[], datetime] = utcnow):
        self._source = source
        self.now: Optional[datetime] = None

    def tick(self) -> datetime:
        self.now = self._source()
        return self.now

    async def run(self, interval_sec: float = 1.0, on_tick: Optional[Callable[[datetime], None]] = None) -> None:
        while True:
            now = self.tick()
            if on_tick is not None:
                on_tick(now)
            await asyncio.sleep(interval_sec)
