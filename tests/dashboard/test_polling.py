"""
Tests for dashboard/polling.py - sequence-guarded snapshots and pollers.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from core.exceptions import FetchError
from core.structured_log import read_recent_logs
from dashboard.polling import Clock, Poller, Snapshot, SnapshotSlot

T0 = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class TestSnapshotSlot:
    """Tests for SnapshotSlot ordering and stale-while-error."""

    def test_starts_empty(self):
        snap = SnapshotSlot("s").snapshot
        assert snap == Snapshot()
        assert not snap.has_data
        assert not snap.is_stale
        assert not snap.is_hard_error

    def test_success_replaces_snapshot(self):
        slot = SnapshotSlot("s", clock=lambda: T0)
        assert slot.apply_success(1, ["a"])
        assert slot.snapshot.data == ["a"]
        assert slot.snapshot.last_success_at == T0

    def test_older_response_discarded(self):
        """A slow earlier request must not overwrite a newer result."""
        slot = SnapshotSlot("s")
        slot.apply_success(2, "newer")

        assert slot.apply_success(1, "older") is False
        assert slot.apply_failure(1, FetchError("late failure")) is False
        assert slot.snapshot.data == "newer"
        assert slot.snapshot.error is None
        assert read_recent_logs()[-1]["event"] == "poll_discarded_stale_response"

    def test_failure_keeps_prior_data(self):
        slot = SnapshotSlot("s")
        slot.apply_success(1, "good")
        slot.apply_failure(2, FetchError("boom"))

        snap = slot.snapshot
        assert snap.data == "good"
        assert snap.is_stale
        assert not snap.is_hard_error

    def test_failure_without_data_is_hard_error(self):
        slot = SnapshotSlot("s")
        slot.apply_failure(1, FetchError("boom"))
        assert slot.snapshot.is_hard_error

    def test_recovery_clears_error(self):
        slot = SnapshotSlot("s")
        slot.apply_failure(1, FetchError("boom"))
        slot.apply_success(2, "ok")
        assert slot.snapshot.error is None
        assert not slot.snapshot.is_stale


class TestPoller:
    """Tests for Poller.poll_once and out-of-order arrival."""

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            Poller("p", fetch=lambda: None, slot=SnapshotSlot("p"), interval_sec=0)

    def test_poll_success_notifies(self):
        updates = []

        async def fetch():
            return {"v": 1}

        poller = Poller("p", fetch, SnapshotSlot("p"), 1.0, on_update=updates.append)
        assert asyncio.run(poller.poll_once()) is True
        assert poller.slot.snapshot.data == {"v": 1}
        assert updates == ["p"]

    def test_poll_failure_is_recorded_not_raised(self):
        async def fetch():
            raise FetchError("Request failed with status 502", status=502)

        poller = Poller("p", fetch, SnapshotSlot("p"), 1.0)
        asyncio.run(poller.poll_once())

        snap = poller.slot.snapshot
        assert snap.is_hard_error
        assert snap.error.status == 502
        assert read_recent_logs()[-1]["event"] == "poll_failed"

    def test_unexpected_exception_propagates(self):
        async def fetch():
            raise RuntimeError("bug")

        poller = Poller("p", fetch, SnapshotSlot("p"), 1.0)
        with pytest.raises(RuntimeError):
            asyncio.run(poller.poll_once())

    def test_late_arrival_does_not_overwrite(self):
        """First request resolves after the second one; its result is dropped."""

        async def scenario():
            release_first = asyncio.Event()
            calls = []

            async def fetch():
                calls.append(len(calls) + 1)
                if len(calls) == 1:
                    await release_first.wait()
                    return "first"
                return "second"

            poller = Poller("p", fetch, SnapshotSlot("p"), 1.0)
            first = asyncio.ensure_future(poller.poll_once())
            await asyncio.sleep(0)
            second_applied = await poller.poll_once()
            release_first.set()
            first_applied = await first
            return poller.slot.snapshot, first_applied, second_applied

        snap, first_applied, second_applied = asyncio.run(scenario())
        assert second_applied is True
        assert first_applied is False
        assert snap.data == "second"
        assert snap.seq == 2

    def test_run_polls_until_cancelled(self):
        count = []

        async def fetch():
            count.append(1)
            return len(count)

        async def scenario():
            poller = Poller("p", fetch, SnapshotSlot("p"), 0.01)
            task = asyncio.ensure_future(poller.run())
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return poller

        poller = asyncio.run(scenario())
        assert len(count) >= 2
        assert poller.slot.snapshot.has_data


class TestClock:
    def test_tick_uses_source(self):
        clock = Clock(source=lambda: T0)
        assert clock.now is None
        assert clock.tick() == T0
        assert clock.now == T0
