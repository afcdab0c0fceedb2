"""Unit tests for cancellable timers."""

import asyncio

import pytest

from xelochat.core.timers import CancellableTimer, LoopScheduler


class TestCancellableTimer:
    """Tests for CancellableTimer over a fake clock."""

    def test_fires_after_duration(self, scheduler):
        fired = []
        timer = CancellableTimer(2000, lambda: fired.append(scheduler.now), scheduler)

        timer.start()
        scheduler.advance(1500)
        assert fired == []
        assert timer.active

        scheduler.advance(500)
        assert fired == [2.0]
        assert not timer.active

    def test_reset_pushes_deadline(self, scheduler):
        fired = []
        timer = CancellableTimer(2000, lambda: fired.append(scheduler.now), scheduler)

        timer.start()
        scheduler.advance(1500)
        timer.reset()
        scheduler.advance(1500)
        assert fired == []

        scheduler.advance(500)
        assert fired == [3.5]

    def test_cancel_prevents_firing(self, scheduler):
        fired = []
        timer = CancellableTimer(1000, lambda: fired.append(True), scheduler)

        timer.start()
        timer.cancel()
        scheduler.advance(5000)

        assert fired == []
        assert not timer.active
        assert scheduler.pending == 0

    def test_cancel_when_idle_is_safe(self, scheduler):
        timer = CancellableTimer(1000, lambda: None, scheduler)
        timer.cancel()
        timer.cancel()
        assert not timer.active

    def test_only_one_deadline_pending(self, scheduler):
        timer = CancellableTimer(1000, lambda: None, scheduler)

        for _ in range(5):
            timer.reset()

        assert scheduler.pending == 1

    def test_stale_callback_is_dropped(self, scheduler):
        fired = []
        timer = CancellableTimer(1000, lambda: fired.append(True), scheduler)

        timer.start()
        stale = scheduler._handles[0]
        timer.cancel()

        # A handle that ignored cancel() still must not fire the callback
        stale.callback()
        assert fired == []

    def test_rejects_non_positive_duration(self, scheduler):
        with pytest.raises(ValueError):
            CancellableTimer(0, lambda: None, scheduler)


class TestLoopScheduler:
    """Tests for the asyncio-backed scheduler."""

    @pytest.mark.asyncio
    async def test_fires_on_event_loop(self):
        fired = asyncio.Event()
        timer = CancellableTimer(10, fired.set, LoopScheduler())

        timer.start()
        await asyncio.wait_for(fired.wait(), timeout=1.0)

        assert not timer.active

    @pytest.mark.asyncio
    async def test_cancel_on_event_loop(self):
        fired = []
        timer = CancellableTimer(10, lambda: fired.append(True), LoopScheduler())

        timer.start()
        timer.cancel()
        await asyncio.sleep(0.05)

        assert fired == []
