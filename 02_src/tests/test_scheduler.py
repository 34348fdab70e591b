"""Tests for the timer schedulers."""

import asyncio

import pytest

from eventhub.scheduler import AsyncioScheduler, VirtualScheduler


def recorder(calls, name):
    async def callback():
        calls.append(name)

    return callback


class TestVirtualScheduler:
    """Tests for VirtualScheduler."""

    async def test_runs_due_callbacks_in_time_order(self, virtual_scheduler):
        """Test that callbacks fire by due time, not insertion order."""
        calls = []
        virtual_scheduler.call_later(20, recorder(calls, "late"))
        virtual_scheduler.call_later(5, recorder(calls, "early"))

        await virtual_scheduler.advance(30)

        assert calls == ["early", "late"]
        assert virtual_scheduler.time() == 30

    async def test_same_due_time_keeps_insertion_order(self, virtual_scheduler):
        """Test FIFO order for equal due times."""
        calls = []
        virtual_scheduler.call_later(5, recorder(calls, "first"))
        virtual_scheduler.call_later(5, recorder(calls, "second"))

        await virtual_scheduler.advance(5)

        assert calls == ["first", "second"]

    async def test_partial_advance(self, virtual_scheduler):
        """Test that callbacks not yet due stay queued."""
        calls = []
        virtual_scheduler.call_later(10, recorder(calls, "a"))

        await virtual_scheduler.advance(9)
        assert calls == []
        assert virtual_scheduler.pending == 1

        await virtual_scheduler.advance(1)
        assert calls == ["a"]
        assert virtual_scheduler.pending == 0

    async def test_cancel_prevents_callback(self, virtual_scheduler):
        """Test cancelling before the due time."""
        calls = []
        handle = virtual_scheduler.call_later(10, recorder(calls, "a"))

        assert handle.cancel() is True
        assert handle.cancel() is False
        await virtual_scheduler.advance(20)

        assert calls == []
        assert handle.cancelled
        assert not handle.started

    async def test_cancel_while_running_returns_false(self, virtual_scheduler):
        """Test that a started callback can no longer be cancelled."""
        results = []
        handles = []

        async def callback():
            results.append(handles[0].cancel())

        handles.append(virtual_scheduler.call_later(1, callback))
        await virtual_scheduler.advance(1)

        assert results == [False]
        assert handles[0].started

    async def test_callbacks_scheduled_while_advancing(self, virtual_scheduler):
        """Test chained timers that fall inside the same advance."""
        calls = []

        async def first():
            calls.append(("first", virtual_scheduler.time()))
            virtual_scheduler.call_later(5, second)

        async def second():
            calls.append(("second", virtual_scheduler.time()))

        virtual_scheduler.call_later(5, first)
        await virtual_scheduler.advance(10)

        assert calls == [("first", 5), ("second", 10)]

    async def test_failing_callback_does_not_stop_others(self, virtual_scheduler):
        """Test that errors are isolated per callback."""
        calls = []

        async def failing():
            raise RuntimeError("boom")

        virtual_scheduler.call_later(1, failing)
        virtual_scheduler.call_later(2, recorder(calls, "ok"))

        await virtual_scheduler.advance(2)

        assert calls == ["ok"]

    def test_negative_delay_raises(self, virtual_scheduler):
        """Test that timers cannot be scheduled in the past."""
        with pytest.raises(ValueError):
            virtual_scheduler.call_later(-1, recorder([], "x"))

    async def test_cannot_go_backwards(self, virtual_scheduler):
        """Test that advance rejects negative steps."""
        with pytest.raises(ValueError):
            await virtual_scheduler.advance(-1)

    async def test_close_cancels_everything(self, virtual_scheduler):
        """Test that close drops all timers."""
        calls = []
        handle = virtual_scheduler.call_later(1, recorder(calls, "a"))

        await virtual_scheduler.close()
        await virtual_scheduler.advance(5)

        assert calls == []
        assert handle.cancelled
        assert virtual_scheduler.pending == 0


class TestAsyncioScheduler:
    """Tests for AsyncioScheduler."""

    async def test_callback_fires_after_delay(self):
        """Test a wall-clock timer fires."""
        scheduler = AsyncioScheduler()
        calls = []

        handle = scheduler.call_later(0.01, recorder(calls, "a"))
        assert scheduler.pending == 1
        await asyncio.sleep(0.1)

        assert calls == ["a"]
        assert handle.started
        assert scheduler.pending == 0

    async def test_cancel_prevents_callback(self):
        """Test cancelling a pending wall-clock timer."""
        scheduler = AsyncioScheduler()
        calls = []

        handle = scheduler.call_later(0.05, recorder(calls, "a"))
        assert handle.cancel() is True
        await asyncio.sleep(0.1)

        assert calls == []
        assert handle.cancelled

    async def test_running_callback_completes_after_cancel(self):
        """Test that cancel() cannot interrupt a callback that started."""
        scheduler = AsyncioScheduler()
        started = asyncio.Event()
        release = asyncio.Event()
        calls = []

        async def slow():
            started.set()
            await release.wait()
            calls.append("done")

        handle = scheduler.call_later(0, slow)
        await asyncio.wait_for(started.wait(), timeout=1)

        assert handle.cancel() is False
        release.set()
        await asyncio.sleep(0.01)

        assert calls == ["done"]

    async def test_close_cancels_pending(self):
        """Test that close cancels timers that have not fired."""
        scheduler = AsyncioScheduler()
        calls = []
        handle = scheduler.call_later(10, recorder(calls, "a"))

        await scheduler.close()

        assert handle.cancelled
        assert scheduler.pending == 0
        assert calls == []

    async def test_failing_callback_is_logged(self):
        """Test that callback errors don't escape the timer task."""
        scheduler = AsyncioScheduler()

        async def failing():
            raise RuntimeError("boom")

        handle = scheduler.call_later(0, failing)
        await asyncio.sleep(0.05)

        assert handle.started

    async def test_negative_delay_raises(self):
        """Test that negative delays are rejected."""
        with pytest.raises(ValueError):
            AsyncioScheduler().call_later(-0.1, recorder([], "x"))

    def test_requires_running_loop(self):
        """Test that scheduling outside an event loop fails."""
        with pytest.raises(RuntimeError):
            AsyncioScheduler().call_later(1, recorder([], "x"))
